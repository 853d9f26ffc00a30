"""CLI entrypoints for API key and token operational tasks."""

from __future__ import annotations

import argparse
import asyncio
import json
from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

import uvicorn

from tenantkit.config import configure_structlog, get_settings
from tenantkit.container import build_container
from tenantkit.core.jwt import JWTService
from tenantkit.db.session import create_schema


def _run_issue_token(subject: UUID, username: str | None, ttl_seconds: int | None) -> int:
    """Mint an access token for subject using the configured signing key."""
    settings = get_settings()
    jwt_service = JWTService(
        private_key_pem=settings.jwt.private_key_pem.get_secret_value(),
        public_key_pem=settings.jwt.public_key_pem.get_secret_value(),
    )
    effective_ttl = ttl_seconds if ttl_seconds is not None else settings.jwt.access_token_ttl_seconds
    claims = {"username": username} if username else None
    token = jwt_service.issue_token(
        subject=str(subject),
        expires_in_seconds=effective_ttl,
        additional_claims=claims,
    )
    print(json.dumps({"access_token": token, "token_type": "bearer", "expires_in": effective_ttl}))
    return 0


async def _run_create_api_key(
    user_id: UUID,
    name: str,
    permissions: list[str],
    expires_at: datetime | None,
    never_expire: bool,
) -> int:
    """Issue an API key directly against the database and print it once."""
    settings = get_settings()
    configure_structlog(settings)
    container = build_container(settings)
    try:
        await create_schema(container.engine)
        async with container.session_factory() as db_session:
            issued = await container.api_key_service.issue(
                db_session,
                user_id=user_id,
                name=name,
                expires_at=expires_at,
                never_expire=never_expire,
                permissions=permissions,
            )
    finally:
        await container.aclose()

    record = issued.record
    print(
        json.dumps(
            {
                "id": str(record.id),
                "key": issued.api_key,
                "prefix": record.key_prefix,
                "permissions": record.permissions.ordered(),
                "expires_at": record.expires_at.isoformat() if record.expires_at else None,
            }
        )
    )
    return 0


def _run_serve() -> int:
    """Serve the application with uvicorn using configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "tenantkit.main:create_app",
        factory=True,
        host=settings.app.host,
        port=settings.app.port,
        log_level=settings.app.log_level.lower(),
    )
    return 0


def _parse_permissions(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


def _build_parser() -> argparse.ArgumentParser:
    """Build command-line parser for supported operational commands."""
    parser = argparse.ArgumentParser(prog="python -m tenantkit.cli")
    subcommands = parser.add_subparsers(dest="command", required=True)

    token_parser = subcommands.add_parser("issue-token")
    token_parser.add_argument("--user-id", type=UUID, required=True)
    token_parser.add_argument("--username", default=None)
    token_parser.add_argument(
        "--ttl-seconds",
        type=int,
        default=None,
        help="Optional override for JWT__ACCESS_TOKEN_TTL_SECONDS during this run.",
    )

    key_parser = subcommands.add_parser("create-api-key")
    key_parser.add_argument("--user-id", type=UUID, required=True)
    key_parser.add_argument("--name", required=True)
    key_parser.add_argument(
        "--permissions",
        type=_parse_permissions,
        default=[],
        help="Comma-separated permission names, '*' for all.",
    )
    expiry = key_parser.add_mutually_exclusive_group()
    expiry.add_argument("--expires-at", type=datetime.fromisoformat, default=None)
    expiry.add_argument("--never-expire", action="store_true")

    subcommands.add_parser("serve")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run CLI command."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command == "issue-token":
        return _run_issue_token(args.user_id, args.username, args.ttl_seconds)
    if args.command == "create-api-key":
        return asyncio.run(
            _run_create_api_key(
                user_id=args.user_id,
                name=args.name,
                permissions=args.permissions,
                expires_at=args.expires_at,
                never_expire=args.never_expire,
            )
        )
    if args.command == "serve":
        return _run_serve()
    parser.error("Unsupported command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
