"""Database package exports."""

from tenantkit.db.base import Base
from tenantkit.db.session import build_engine, build_session_factory, create_schema

__all__ = ["Base", "build_engine", "build_session_factory", "create_schema"]
