"""
Soft Delete Mixin — ``deleted_at`` timestamp plus query helpers.

Business projects are never physically removed: deleting one stamps
``deleted_at`` and every workspace bound to it becomes unavailable for
mutations (see ``tenant_service.is_project_available``).

Usage:
    class Project(SoftDeleteMixin, db.Model):
        ...

    project.soft_delete()
    db.session.commit()

    Project.query_available().filter_by(client_id=7).all()
"""

from datetime import datetime, timezone

from app.models import db


class SoftDeleteMixin:
    """Adds a nullable ``deleted_at`` column; NULL means the row is live."""

    deleted_at = db.Column(db.DateTime, nullable=True, default=None, index=True)

    def soft_delete(self, when: datetime | None = None):
        self.deleted_at = when or datetime.now(timezone.utc)

    def restore(self):
        self.deleted_at = None

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @classmethod
    def available_clause(cls):
        """WHERE clause usable in Core ``select()`` statements."""
        return cls.deleted_at.is_(None)

    @classmethod
    def query_available(cls):
        return cls.query.filter(cls.available_clause())
