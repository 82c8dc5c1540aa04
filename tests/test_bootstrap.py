"""Tests for startup seeding of roles and the administrator."""
import pytest

from app.core.security import ROLE_PERMISSIONS, Permission
from app.crud.user import role as role_crud
from app.services.auth_service import AuthService
from app.services.bootstrap_service import ensure_default_admin, ensure_roles


@pytest.mark.asyncio
async def test_roles_are_created_with_permissions(db_session):
    role_map = await ensure_roles(db_session, role_names=ROLE_PERMISSIONS.keys())
    assert set(role_map) == {"admin", "user"}
    assert Permission.PROJECT_MANAGE.value in role_map["admin"].permissions
    assert Permission.PROJECT_MANAGE.value not in role_map["user"].permissions


@pytest.mark.asyncio
async def test_drifted_permissions_are_restored(db_session):
    await ensure_roles(db_session, role_names=["user"])
    user_role = await role_crud.get_by_name(db_session, name="user")
    await role_crud.update(db_session, db_obj=user_role, obj_in={"permissions": []})

    role_map = await ensure_roles(db_session, role_names=["user"])
    assert role_map["user"].id == user_role.id
    assert set(role_map["user"].permissions) == {p.value for p in ROLE_PERMISSIONS["user"]}


@pytest.mark.asyncio
async def test_default_admin_is_created_once(db_session):
    admin = await ensure_default_admin(db_session, email="root@example.com", password="s3cret")
    assert [role.name for role in admin.roles] == ["admin"]

    again = await ensure_default_admin(db_session, email="root@example.com", password="other")
    assert again.id == admin.id

    assert await AuthService.authenticate_user(db_session, "root@example.com", "s3cret") is not None
    assert await AuthService.authenticate_user(db_session, "root@example.com", "other") is None
