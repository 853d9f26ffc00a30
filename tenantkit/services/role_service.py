"""Role directory resolving a user's effective permission set."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantkit.core.permissions import PermissionSet
from tenantkit.models.authorization import Permission, Role, UserRole, role_permissions


class PermissionDirectory(Protocol):
    """Anything that can answer which permissions a user holds."""

    async def effective_permissions(
        self,
        db_session: AsyncSession,
        user_id: UUID,
        organization_id: UUID | None = None,
        team_id: UUID | None = None,
    ) -> PermissionSet: ...


class RoleService:
    """Resolve permissions granted through active role bindings."""

    def __init__(self, clock: Callable[[], datetime] = lambda: datetime.now(UTC)) -> None:
        self._clock = clock

    async def effective_permissions(
        self,
        db_session: AsyncSession,
        user_id: UUID,
        organization_id: UUID | None = None,
        team_id: UUID | None = None,
    ) -> PermissionSet:
        """Union the permissions of every binding that applies in the given context.

        Bindings without an organization or team apply everywhere. A binding
        scoped to an organization or team applies only when that context is
        requested.
        """
        now = self._clock()
        organization_scope = UserRole.organization_id.is_(None)
        if organization_id is not None:
            organization_scope = or_(organization_scope, UserRole.organization_id == organization_id)
        team_scope = UserRole.team_id.is_(None)
        if team_id is not None:
            team_scope = or_(team_scope, UserRole.team_id == team_id)

        statement = (
            select(Permission.name)
            .join(role_permissions, role_permissions.c.permission_id == Permission.id)
            .join(Role, Role.id == role_permissions.c.role_id)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(
                UserRole.user_id == user_id,
                UserRole.is_active.is_(True),
                UserRole.deleted_at.is_(None),
                or_(UserRole.expires_at.is_(None), UserRole.expires_at > now),
                Role.is_active.is_(True),
                Role.deleted_at.is_(None),
                Permission.deleted_at.is_(None),
                organization_scope,
                team_scope,
            )
            .distinct()
        )
        result = await db_session.execute(statement)
        return PermissionSet(result.scalars().all())
