"""ORM model exports."""

from tenantkit.models.api_key import APIKey
from tenantkit.models.authorization import Permission, Role, UserRole, role_permissions
from tenantkit.models.user import User

__all__ = [
    "APIKey",
    "Permission",
    "Role",
    "User",
    "UserRole",
    "role_permissions",
]
