"""Integration tests for the API key lifecycle against Postgres."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select

from tenantkit.core.api_keys import APIKeyCore
from tenantkit.core.hashing import CredentialHasher
from tenantkit.core.permissions import PermissionSet
from tenantkit.models import APIKey

BASE = "/api/v1/apikeys"


@pytest.mark.asyncio
async def test_apikey_create_use_list_and_revoke_flow(
    real_client, user_factory, auth_headers, db_session
) -> None:
    """Issue, authenticate, list and revoke a key through the HTTP surface."""
    owner = await user_factory("owner@example.com")
    headers = auth_headers(owner.id)

    create_response = await real_client.post(
        BASE,
        headers=headers,
        json={"name": "orders", "permissions": ["orders.read"], "never_expire": True},
    )
    assert create_response.status_code == 201
    created = create_response.json()

    stored = await db_session.scalar(select(APIKey).where(APIKey.key_prefix == created["prefix"]))
    assert stored is not None
    assert stored.hashed_key.startswith("$2")
    assert created["key"] not in stored.hashed_key
    assert stored.permissions == {"orders.read"}

    protected = await real_client.get("/api/v1/protected", params={"api_key": created["key"]})
    assert protected.status_code == 200
    assert protected.json()["auth_type"] == "api_key"
    assert protected.json()["user_id"] == str(owner.id)

    list_response = await real_client.get(BASE, headers=headers)
    assert list_response.status_code == 200
    listed = list_response.json()
    assert listed["total"] == 1
    assert listed["data"][0]["last_used_at"] is not None
    assert "key" not in listed["data"][0]

    revoke_response = await real_client.delete(f"{BASE}/{created['id']}", headers=headers)
    assert revoke_response.status_code == 204

    after_revoke = await real_client.get("/api/v1/protected", headers={"X-API-Key": created["key"]})
    assert after_revoke.status_code == 401
    assert (await real_client.get(BASE, headers=headers)).json()["total"] == 0


@pytest.mark.asyncio
async def test_revoke_by_other_user_leaves_key_active(
    real_client, user_factory, auth_headers
) -> None:
    owner = await user_factory("owner@example.com")
    intruder = await user_factory("intruder@example.com")
    created = (
        await real_client.post(BASE, headers=auth_headers(owner.id), json={"name": "svc"})
    ).json()

    revoke_response = await real_client.delete(
        f"{BASE}/{created['id']}", headers=auth_headers(intruder.id)
    )
    protected = await real_client.get("/api/v1/protected", headers={"X-API-Key": created["key"]})

    assert revoke_response.status_code == 401
    assert revoke_response.json()["reason"] == "unauthorized"
    assert protected.status_code == 200


@pytest.mark.asyncio
async def test_update_expiry_into_past_rejects_key(real_client, user_factory, auth_headers) -> None:
    owner = await user_factory("owner@example.com")
    headers = auth_headers(owner.id)
    created = (
        await real_client.post(BASE, headers=headers, json={"name": "svc", "never_expire": True})
    ).json()

    past = (datetime.now(UTC) - timedelta(minutes=5)).isoformat()
    update_response = await real_client.put(
        f"{BASE}/{created['id']}", headers=headers, json={"expires_at": past}
    )
    protected = await real_client.get("/api/v1/protected", headers={"X-API-Key": created["key"]})

    assert update_response.status_code == 200
    assert update_response.json()["name"] == "svc"
    assert protected.status_code == 401
    assert protected.json()["message"] == "Authorization header is required."


@pytest.mark.asyncio
async def test_prefix_collisions_resolve_by_hash(real_container, user_factory, db_session) -> None:
    """Two live keys sharing a prefix both validate against their own secret."""
    owner = await user_factory("owner@example.com")
    core = APIKeyCore()
    first = await real_container.api_key_service.issue(db_session, user_id=owner.id, name="first")
    colliding_secret = first.api_key[:8] + core.generate_secret()[8:]
    db_session.add(
        APIKey(
            name="second",
            hashed_key=CredentialHasher(rounds=4).hash(colliding_secret),
            key_prefix=core.key_prefix(colliding_secret),
            user_id=owner.id,
            permissions=PermissionSet(["reports.read"]),
        )
    )
    await db_session.commit()

    validated_first = await real_container.api_key_service.validate(db_session, first.api_key)
    validated_second = await real_container.api_key_service.validate(db_session, colliding_secret)

    assert validated_first.id == first.record.id
    assert validated_second.name == "second"
    assert validated_second.permissions == {"reports.read"}


@pytest.mark.asyncio
async def test_last_used_touch_does_not_bump_updated_at(
    real_container, user_factory, db_session
) -> None:
    owner = await user_factory("owner@example.com")
    issued = await real_container.api_key_service.issue(db_session, user_id=owner.id, name="svc")
    updated_before = issued.record.updated_at

    await real_container.api_key_service.validate(db_session, issued.api_key)

    db_session.expire_all()
    row = await db_session.get(APIKey, issued.record.id)
    assert row.last_used_at is not None
    assert row.updated_at == updated_before
