"""
Crypto utilities — bcrypt password hashing.

Hashes written here use the $2b$ prefix; rows imported from other bcrypt
writers may carry $2a$ or $2y$.  bcrypt verifies all three natively.
"""

import bcrypt

BCRYPT_ROUNDS = 10


def hash_password(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a plain-text password with bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str | None) -> bool:
    """Verify a plain-text password; malformed or empty hashes never match."""
    if not password_hash or not plain_password:
        return False
    if not password_hash.startswith(("$2a$", "$2b$", "$2y$")):
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            password_hash.encode("utf-8"),
        )
    except ValueError:
        return False
