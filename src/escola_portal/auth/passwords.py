"""
escola_portal.auth.passwords

bcrypt hashing helpers.

Responsibilities:
- Hash secrets with a per-hash random salt.
- Verify secrets with bcrypt's constant-time comparison.
- Provide a dummy hash so unknown identifiers cost one full comparison too.
"""

from __future__ import annotations

import secrets
from functools import lru_cache

import bcrypt

# bcrypt only looks at the first 72 bytes; recent releases reject longer input outright.
_MAX_SECRET_BYTES = 72


def _encode(secret: str) -> bytes:
    return secret.encode("utf-8")[:_MAX_SECRET_BYTES]


def hash_password(secret: str, *, rounds: int = 12) -> str:
    return bcrypt.hashpw(_encode(secret), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_password(secret: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_encode(secret), password_hash.encode("ascii"))
    except ValueError:
        # Malformed or non-bcrypt stored value (e.g. legacy plaintext): never a match.
        return False


@lru_cache(maxsize=4)
def dummy_hash(rounds: int) -> str:
    return hash_password(secrets.token_urlsafe(16), rounds=rounds)
