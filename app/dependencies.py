"""FastAPI dependencies for authentication and authorization."""
from typing import Iterable, Optional
from uuid import UUID
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from pydantic import ValidationError as PayloadError
from sqlalchemy.ext.asyncio import AsyncSession
from app.config import settings
from app.crud.user import user as user_crud
from app.database import get_db
from app.localization.helpers import get_translation
from app.models.project import ProjectRole
from app.models.user import User
from app.schemas.auth import TokenPayload
from app.services.project_membership_service import membership_service
from app.utils.security import decode_token
from app.utils.permissions import has_permission, manages_all_projects
from app.core.security import Permission
from app.core.exceptions import UnauthorizedError, ForbiddenError

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_PREFIX}/auth/login")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the bearer token to a user with roles loaded."""
    try:
        payload = TokenPayload.model_validate(decode_token(token))
    except (ValueError, PayloadError):
        raise UnauthorizedError(get_translation("errors.invalid_token"))

    user = await user_crud.get_with_roles(db, id=payload.sub)
    if user is None:
        raise UnauthorizedError(get_translation("errors.invalid_token"))
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Get current active user."""
    if not current_user.is_active:
        raise ForbiddenError(get_translation("errors.inactive_user"))
    return current_user


def require_permission(permission: Permission):
    """Dependency factory for requiring a specific permission."""

    async def permission_checker(
        current_user: User = Depends(get_current_active_user),
    ) -> User:
        if not has_permission(current_user, permission):
            raise ForbiddenError(f"Permission required: {permission.value}")
        return current_user

    return permission_checker


async def ensure_project_access(
    db: AsyncSession,
    *,
    project_id: UUID,
    user: User,
    roles: Optional[Iterable[ProjectRole]] = None,
) -> Optional[ProjectRole]:
    """Let project members through, optionally only with one of ``roles``.

    Holders of the global project.manage permission always pass and get
    ``None`` back.
    """
    if manages_all_projects(user):
        return None
    role = await membership_service.get_role(db, project_id=project_id, user_id=user.id)
    if role is None:
        raise ForbiddenError(get_translation("errors.project_access_denied"))
    if roles is not None and role not in set(roles):
        raise ForbiddenError()
    return role
