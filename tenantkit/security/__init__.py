"""Authentication schemes and authorization dependencies."""

from tenantkit.security.authenticators import (
    APIKeyAuthenticator,
    AuthenticationError,
    BearerTokenAuthenticator,
    CombinedAuthenticator,
)
from tenantkit.security.dependencies import (
    get_current_principal,
    require_any_auth,
    require_api_key,
    require_jwt,
    require_permissions,
)
from tenantkit.security.principal import Principal

__all__ = [
    "APIKeyAuthenticator",
    "AuthenticationError",
    "BearerTokenAuthenticator",
    "CombinedAuthenticator",
    "Principal",
    "get_current_principal",
    "require_any_auth",
    "require_api_key",
    "require_jwt",
    "require_permissions",
]
