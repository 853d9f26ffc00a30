"""API-key, bearer-token and combined authentication schemes."""

from __future__ import annotations

import hmac
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request

from tenantkit.config import APIKeySettings
from tenantkit.core.jwt import JWTService, TokenValidationError
from tenantkit.security.principal import Principal
from tenantkit.services.api_key_service import APIKeyService, APIKeyServiceError

logger = structlog.get_logger(__name__)

INVALID_API_KEY_DETAIL = "Invalid or missing API key."


class AuthenticationError(Exception):
    """Raised when a request carries no usable credential for a scheme."""

    def __init__(self, detail: str, code: str, scheme: str, status_code: int = 401) -> None:
        super().__init__(detail)
        self.detail = detail
        self.code = code
        self.scheme = scheme
        self.status_code = status_code


class APIKeyAuthenticator:
    """Authenticate with an opaque key from a header, falling back to a query parameter."""

    scheme = "ApiKey"

    def __init__(self, header_name: str = "X-API-Key", query_param: str = "api_key") -> None:
        self._header_name = header_name
        self._query_param = query_param

    @classmethod
    def from_settings(cls, settings: APIKeySettings) -> APIKeyAuthenticator:
        return cls(header_name=settings.header_name, query_param=settings.query_param)

    def extract(self, request: Request) -> str | None:
        """Return the presented key, or None when neither location carries one."""
        header_value = request.headers.get(self._header_name, "").strip()
        if header_value:
            return header_value
        query_value = request.query_params.get(self._query_param, "").strip()
        return query_value or None

    async def authenticate(
        self,
        request: Request,
        db_session: AsyncSession,
        api_key_service: APIKeyService,
    ) -> Principal:
        """Validate the presented key; every failure yields the same generic error."""
        raw_key = self.extract(request)
        if raw_key is None:
            raise AuthenticationError(INVALID_API_KEY_DETAIL, "invalid_api_key", self.scheme)

        try:
            key_row = await api_key_service.validate(db_session, raw_key)
        except APIKeyServiceError as exc:
            logger.info("api_key_rejected", reason=exc.code, path=request.url.path)
            raise AuthenticationError(
                INVALID_API_KEY_DETAIL, "invalid_api_key", self.scheme
            ) from exc

        return Principal(
            user_id=key_row.user_id,
            auth_type="api_key",
            key_id=key_row.id,
            permissions=key_row.permissions,
        )


class BearerTokenAuthenticator:
    """Authenticate with an RS256 access token from the Authorization header."""

    scheme = "Bearer"

    def extract(self, request: Request) -> str:
        """Return the bearer token or raise for a missing or malformed header."""
        authorization = request.headers.get("authorization", "").strip()
        if not authorization:
            raise AuthenticationError(
                "Authorization header is required.", "invalid_token", self.scheme
            )
        scheme, _, token = authorization.partition(" ")
        token = token.strip()
        if not hmac.compare_digest(scheme.lower(), "bearer") or not token:
            raise AuthenticationError(
                "Invalid authorization format.", "invalid_token", self.scheme
            )
        return token

    def authenticate(self, request: Request, jwt_service: JWTService) -> Principal:
        """Verify the bearer token and resolve its subject."""
        token = self.extract(request)
        try:
            claims = jwt_service.verify_token(token, expected_type="access")
        except TokenValidationError as exc:
            raise AuthenticationError(exc.detail, exc.code, self.scheme) from exc

        try:
            user_id = UUID(str(claims.get("sub", "")))
        except ValueError as exc:
            raise AuthenticationError("Invalid token.", "invalid_token", self.scheme) from exc

        username = claims.get("username")
        return Principal(
            user_id=user_id,
            auth_type="jwt",
            username=username if isinstance(username, str) and username else None,
        )


class CombinedAuthenticator:
    """Try API-key authentication first, then fall back to the bearer token.

    When both fail, the bearer scheme's error is the one reported.
    """

    def __init__(
        self,
        api_key_authenticator: APIKeyAuthenticator,
        bearer_authenticator: BearerTokenAuthenticator,
    ) -> None:
        self._api_key_authenticator = api_key_authenticator
        self._bearer_authenticator = bearer_authenticator

    async def authenticate(
        self,
        request: Request,
        db_session: AsyncSession,
        api_key_service: APIKeyService,
        jwt_service: JWTService,
    ) -> Principal:
        if self._api_key_authenticator.extract(request) is not None:
            try:
                return await self._api_key_authenticator.authenticate(
                    request, db_session, api_key_service
                )
            except AuthenticationError:
                logger.debug("combined_auth_fallback_to_bearer", path=request.url.path)
        return self._bearer_authenticator.authenticate(request, jwt_service)
