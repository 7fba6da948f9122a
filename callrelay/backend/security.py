"""Password hashing for directory logins."""

from __future__ import annotations

import hashlib
import hmac


def hash_password(password: str, server_salt: str) -> str:
    """Hash a login password with the server-wide salt.

    Directory records only ever hold this digest; plaintext passwords are
    dropped once the user is added.
    """
    salted = f"{password}{server_salt}".encode("utf-8")
    return hashlib.sha256(salted).hexdigest()


def verify_password(password: str, password_hash: str, server_salt: str) -> bool:
    """Check a submitted login password against a user's stored digest."""
    return hmac.compare_digest(hash_password(password, server_salt), password_hash)
