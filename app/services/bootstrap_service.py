"""Startup seeding of global roles and the default administrator."""
from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.security import ROLE_PERMISSIONS
from app.crud.user import role as role_crud, user as user_crud
from app.models.user import Role, User
from app.schemas.user import UserCreate

logger = logging.getLogger(__name__)

DEFAULT_ROLE_DESCRIPTIONS = {
    "admin": "Manages every project and workflow on the platform",
    "user": "Works inside the projects they are a member of",
}

DEFAULT_ADMIN_NAME = "Administrator"


async def ensure_roles(
    db: AsyncSession,
    *,
    role_names: Iterable[str],
) -> Dict[str, Role]:
    """Create missing roles and return them by name.

    Permissions of existing roles are brought back in line with
    ROLE_PERMISSIONS.
    """
    role_map: Dict[str, Role] = {}
    changed = False

    for role_name in role_names:
        desired = [permission.value for permission in ROLE_PERMISSIONS.get(role_name, [])]
        role_obj = await role_crud.get_by_name(db, name=role_name)
        if role_obj is None:
            role_obj = await role_crud.create(
                db,
                obj_in={
                    "name": role_name,
                    "permissions": desired,
                    "description": DEFAULT_ROLE_DESCRIPTIONS.get(role_name),
                },
                commit=False,
            )
            changed = True
            logger.info("Created role %s", role_name)
        elif set(role_obj.permissions or []) != set(desired):
            await role_crud.update(db, db_obj=role_obj, obj_in={"permissions": desired}, commit=False)
            changed = True
            logger.info("Synchronised permissions for role %s", role_name)
        role_map[role_name] = role_obj

    if changed:
        await db.commit()
    return role_map


async def ensure_default_admin(
    db: AsyncSession,
    *,
    role_map: Optional[Dict[str, Role]] = None,
    email: Optional[str] = None,
    password: Optional[str] = None,
    full_name: str = DEFAULT_ADMIN_NAME,
) -> User:
    """Return the administrator account, creating it on first start."""
    email = email or settings.DEFAULT_ADMIN_EMAIL
    password = password or settings.DEFAULT_ADMIN_PASSWORD
    if role_map is None or "admin" not in role_map:
        role_map = await ensure_roles(db, role_names={"admin"})
    admin_role = role_map["admin"]

    admin_user = await user_crud.get_by_email(db, email=email)
    if admin_user is not None:
        if admin_role not in admin_user.roles:
            admin_user.roles.append(admin_role)
            await db.commit()
            logger.info("Granted admin role to %s", email)
        return admin_user

    admin_user = await user_crud.create(
        db,
        obj_in=UserCreate(email=email, full_name=full_name, password=password, role_ids=[admin_role.id]),
    )
    logger.info("Created default administrator %s", email)
    return admin_user
