"""API key secret generation and prefix derivation primitives."""

from __future__ import annotations

import re
import secrets

SECRET_BYTES = 32
PREFIX_LENGTH = 8
_PREFIX_PATTERN = re.compile(r"[0-9a-f]{8}")


class APIKeyCore:
    """Core API key operations that never touch storage."""

    def generate_secret(self) -> str:
        """Generate a 64-character lowercase hex secret from 32 random bytes."""
        return secrets.token_hex(SECRET_BYTES)

    def key_prefix(self, raw_key: str) -> str:
        """Return the indexable lookup prefix from the first 8 characters of raw key."""
        return raw_key[:PREFIX_LENGTH]

    def is_valid_format(self, raw_key: str) -> bool:
        """Return True when raw key carries a lowercase hex lookup prefix."""
        return _PREFIX_PATTERN.match(raw_key) is not None
