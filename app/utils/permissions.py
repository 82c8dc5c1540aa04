"""Global RBAC checks on a user's roles."""
from typing import FrozenSet
from app.models.user import User
from app.core.security import Permission


def get_user_permissions(user: User) -> FrozenSet[str]:
    """Union of the permission names granted by all of a user's roles."""
    return frozenset(name for role in user.roles for name in (role.permissions or []))


def has_permission(user: User, permission: Permission) -> bool:
    """Inactive users hold no permissions."""
    return user.is_active and permission.value in get_user_permissions(user)


def manages_all_projects(user: User) -> bool:
    """Global project managers bypass per-project membership checks."""
    return has_permission(user, Permission.PROJECT_MANAGE)
