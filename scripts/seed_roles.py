"""
Seed Roles & Permissions — 6 system roles + the module/action catalogue.

Usage:
    python scripts/seed_roles.py              # Uses development DB
    python scripts/seed_roles.py --env prod   # Uses production DB
    flask --app wsgi seed-roles               # Same, via the app CLI

This script is idempotent — safe to run multiple times.
"""

import argparse
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from app.models.auth import Permission, Role, RolePermission
from app.services.role_seed_service import ROLES, seed_all


def main():
    parser = argparse.ArgumentParser(description="Seed roles and permissions")
    parser.add_argument("--env", default="development", help="App environment")
    args = parser.parse_args()

    os.environ.setdefault("APP_ENV", args.env)
    app = create_app(args.env)

    with app.app_context():
        print("=" * 60)
        print("  SEED: Roles & Permissions")
        print("=" * 60)

        result = seed_all()
        print(f"  Permissions: {result['permissions_created']} created")
        print(f"  Roles:       {result['roles_created']} created")
        print(f"  Grants:      {result['grants_added']} added, {result['grants_removed']} removed")

        print("\n" + "=" * 60)
        print("  SUMMARY")
        print("=" * 60)
        print(f"  Permissions: {Permission.query.count()}")
        print(f"  Roles:       {Role.query.count()}")
        print(f"  Role-Perm:   {RolePermission.query.count()}")

        print("\n📊 Role → Permission Matrix:")
        for role_name in ROLES:
            role = Role.query.filter_by(name=role_name).first()
            if role:
                perm_count = role.role_permissions.count()
                print(f"  {role.display_name:20s} ({role.name:12s}): {perm_count:3d} permissions")

        print("\n✅ Seed complete!")


if __name__ == "__main__":
    main()
