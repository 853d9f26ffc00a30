"""Repository exports."""

from tenantkit.repositories.api_key_repository import (
    APIKeyRepository,
    APIKeyStore,
    clamp_pagination,
)

__all__ = ["APIKeyRepository", "APIKeyStore", "clamp_pagination"]
