"""Custom column types used by ORM models."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from sqlalchemy import Text
from sqlalchemy.engine import Dialect
from sqlalchemy.types import TypeDecorator

from tenantkit.core.permissions import PermissionSet


class PermissionSetType(TypeDecorator[PermissionSet]):
    """Store a PermissionSet as comma-joined text and load it back as a set."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Dialect) -> str:
        if value is None:
            return ""
        if isinstance(value, PermissionSet):
            return value.serialize()
        if isinstance(value, str):
            return PermissionSet.parse(value).serialize()
        if isinstance(value, Iterable):
            return PermissionSet(value).serialize()
        raise TypeError(f"Unsupported permissions value: {type(value).__name__}")

    def process_result_value(self, value: str | None, dialect: Dialect) -> PermissionSet:
        return PermissionSet.parse(value)
