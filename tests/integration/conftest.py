"""Shared integration-test fixtures backed by a Postgres testcontainer."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator, Callable, Iterator
from typing import Any

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from testcontainers.postgres import PostgresContainer

from docker.errors import DockerException


def _generate_rsa_keypair() -> tuple[str, str]:
    """Generate PEM-encoded RSA private/public keypair for integration settings."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    public_pem = (
        private_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode("utf-8")
    )
    return private_pem, public_pem


def _postgres_async_url(postgres: PostgresContainer) -> str:
    """Return a postgresql+asyncpg URL across testcontainers versions."""
    try:
        postgres_url = postgres.get_connection_url(driver=None)
    except TypeError:
        postgres_url = postgres.get_connection_url()

    if postgres_url.startswith("postgresql+"):
        postgres_url = "postgresql://" + postgres_url.split("://", 1)[1]

    return postgres_url.replace("postgresql://", "postgresql+asyncpg://", 1)


def _set_env_values(env_values: dict[str, str]) -> Callable[[], None]:
    """Apply env vars and return a restore callback."""
    original = {key: os.environ.get(key) for key in env_values}
    os.environ.update(env_values)

    def _restore() -> None:
        for key, value in original.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value

    return _restore


@pytest.fixture(scope="session")
def integration_env() -> Iterator[dict[str, str]]:
    """Start Postgres and configure app settings for integration tests."""
    try:
        postgres = PostgresContainer("postgres:16")
        postgres.start()
    except DockerException as exc:
        if os.environ.get("CI", "").lower() in {"1", "true", "yes"}:
            pytest.fail(
                f"Docker daemon unavailable in CI for testcontainers-backed integration tests: {exc}"
            )
        pytest.skip(f"Docker daemon unavailable for testcontainers-backed integration tests: {exc}")

    private_pem, public_pem = _generate_rsa_keypair()
    database_url = _postgres_async_url(postgres)
    restore_env = _set_env_values(
        {
            "APP__ENVIRONMENT": "development",
            "APP__SERVICE": "tenantkit-integration",
            "DATABASE__URL": database_url,
            "JWT__PRIVATE_KEY_PEM": private_pem,
            "JWT__PUBLIC_KEY_PEM": public_pem,
            "API_KEYS__HASH_ROUNDS": "4",
        }
    )

    from tenantkit.config import get_settings

    get_settings.cache_clear()
    try:
        yield {"database_url": database_url}
    finally:
        get_settings.cache_clear()
        restore_env()
        postgres.stop()


@pytest.fixture(scope="function")
async def real_container(integration_env: dict[str, str]) -> AsyncIterator[Any]:
    """Build the production service container on a clean schema."""
    del integration_env
    from tenantkit.config import get_settings
    from tenantkit.container import build_container
    from tenantkit.db.session import create_schema
    from tenantkit.models import APIKey, Permission, Role, User, UserRole, role_permissions

    container = build_container(get_settings())
    await create_schema(container.engine)
    async with container.session_factory() as session:
        await session.execute(delete(UserRole))
        await session.execute(delete(role_permissions))
        await session.execute(delete(Permission))
        await session.execute(delete(Role))
        await session.execute(delete(APIKey))
        await session.execute(delete(User))
        await session.commit()
    try:
        yield container
    finally:
        await container.aclose()


@pytest.fixture(scope="function")
async def db_session(real_container: Any) -> AsyncIterator[AsyncSession]:
    """Yield a write-capable async DB session for test seeding and assertions."""
    async with real_container.session_factory() as session:
        yield session


@pytest.fixture(scope="function")
async def real_client(real_container: Any) -> AsyncIterator[AsyncClient]:
    """HTTP client against an app wired to the real database."""
    from tenantkit.main import create_app

    app = create_app(container=real_container)
    async with AsyncClient(
        transport=ASGITransport(app=app, raise_app_exceptions=False),
        base_url="http://testserver",
    ) as client:
        yield client


@pytest.fixture(scope="function")
def user_factory(db_session: AsyncSession) -> Callable[[str], Any]:
    """Create canonical active user rows."""
    from tenantkit.models import User

    async def _create(email: str) -> User:
        user = User(email=email, username=email.split("@", 1)[0], is_active=True)
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _create


@pytest.fixture(scope="function")
def auth_headers(real_container: Any) -> Callable[[Any], dict[str, str]]:
    """Build bearer headers signed by the container's JWT service."""

    def _build(user_id: Any) -> dict[str, str]:
        token = real_container.jwt_service.issue_token(subject=str(user_id), expires_in_seconds=300)
        return {"Authorization": f"Bearer {token}"}

    return _build
