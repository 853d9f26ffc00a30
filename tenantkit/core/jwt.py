"""JWT issuance and verification for bearer authentication."""

from __future__ import annotations

import base64
import hashlib
import hmac
from datetime import UTC, datetime, timedelta
from typing import Any, Literal
from uuid import uuid4

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTError

TokenType = Literal["access"]
JWT_ALGORITHM = "RS256"
_SUPPORTED_TOKEN_TYPES = ("access",)


class TokenValidationError(Exception):
    """Raised when JWT validation fails."""

    def __init__(self, detail: str, code: str) -> None:
        super().__init__(detail)
        self.detail = detail
        self.code = code


class JWTService:
    """Service for issuing and verifying RS256 JWT tokens."""

    def __init__(self, private_key_pem: str, public_key_pem: str) -> None:
        self._private_key_pem = private_key_pem
        self._public_key_pem = public_key_pem
        self._kid = self.calculate_kid(public_key_pem)

    def issue_token(
        self,
        subject: str,
        token_type: TokenType = "access",
        expires_in_seconds: int = 900,
        additional_claims: dict[str, Any] | None = None,
    ) -> str:
        """Issue a signed JWT with required claims."""
        issued_at = datetime.now(UTC)
        expires_at = issued_at + timedelta(seconds=expires_in_seconds)
        payload: dict[str, Any] = {
            "jti": str(uuid4()),
            "iat": int(issued_at.timestamp()),
            "nbf": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "sub": subject,
            "type": token_type,
        }
        if additional_claims:
            for key, value in additional_claims.items():
                payload.setdefault(key, value)
        return jwt.encode(
            payload,
            self._private_key_pem,
            algorithm=JWT_ALGORITHM,
            headers={"kid": self._kid},
        )

    def verify_token(self, token: str, expected_type: TokenType | None = "access") -> dict[str, Any]:
        """Verify token signature, algorithm, required claims and token type."""
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise TokenValidationError("Invalid token.", "invalid_token") from exc

        algorithm = str(header.get("alg", ""))
        if not hmac.compare_digest(algorithm, JWT_ALGORITHM):
            raise TokenValidationError("Invalid token algorithm.", "invalid_token")

        try:
            payload = jwt.decode(
                token,
                self._public_key_pem,
                algorithms=[JWT_ALGORITHM],
                options={
                    "verify_aud": False,
                    "require_jti": True,
                    "require_iat": True,
                    "require_exp": True,
                    "require_sub": True,
                },
            )
        except ExpiredSignatureError as exc:
            raise TokenValidationError("Token has expired.", "token_expired") from exc
        except JWTError as exc:
            raise TokenValidationError("Invalid token.", "invalid_token") from exc

        token_type = str(payload.get("type", ""))
        if token_type not in _SUPPORTED_TOKEN_TYPES:
            raise TokenValidationError("Invalid token type.", "invalid_token")
        if expected_type and not hmac.compare_digest(token_type, expected_type):
            raise TokenValidationError("Invalid token type.", "invalid_token")
        return payload

    @staticmethod
    def calculate_kid(public_key_pem: str) -> str:
        """Derive a deterministic key ID from the public key."""
        digest = hashlib.sha256(public_key_pem.encode("utf-8")).digest()
        return base64.urlsafe_b64encode(digest[:16]).rstrip(b"=").decode("ascii")
