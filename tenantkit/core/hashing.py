"""Adaptive one-way hashing for stored credentials."""

from __future__ import annotations

from passlib.context import CryptContext


class CredentialHasher:
    """Hash and verify opaque secrets with salted bcrypt."""

    def __init__(self, rounds: int = 12) -> None:
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, secret: str) -> str:
        """Return a salted bcrypt hash for secret."""
        return self._context.hash(secret)

    def verify(self, hashed_value: str, candidate: str) -> bool:
        """Check candidate against hashed value, failing closed on malformed input."""
        if not hashed_value or not candidate:
            return False
        try:
            return bool(self._context.verify(candidate, hashed_value))
        except (ValueError, TypeError):
            return False

    def dummy_verify(self) -> None:
        """Spend one verification worth of time when no candidate hash exists."""
        self._context.dummy_verify()
