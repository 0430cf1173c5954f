"""bcrypt password encoding."""

from __future__ import annotations

import bcrypt


def hash_password(password: str) -> str:
    """Return a salted bcrypt digest suitable for storage."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    """Return ``True`` when ``password`` matches the stored digest."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("ascii"))
    except ValueError:
        # Malformed stored hash.
        return False
