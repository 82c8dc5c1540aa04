"""User CRUD operations."""
from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import func, select
from sqlalchemy.orm import selectinload
from app.crud.base import CRUDBase
from app.models.user import User, Role
from app.schemas.user import UserCreate
from app.utils.security import get_password_hash


class CRUDUser(CRUDBase[User, UserCreate, dict]):
    """CRUD operations for User."""

    async def get_by_email(self, db: AsyncSession, *, email: str) -> Optional[User]:
        """Get user by email, ignoring case."""
        result = await db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
        return result.scalar_one_or_none()

    async def get_with_roles(self, db: AsyncSession, *, id: UUID) -> Optional[User]:
        """Get user with roles loaded."""
        result = await db.execute(
            select(User)
            .where(User.id == id)
            .options(selectinload(User.roles))
        )
        return result.scalar_one_or_none()

    async def create(self, db: AsyncSession, *, obj_in: UserCreate, commit: bool = True) -> User:
        """Create a new user with roles."""
        user_data = obj_in.model_dump(exclude={"password", "role_ids"})
        user_data["password_hash"] = get_password_hash(obj_in.password)
        db_obj = User(**user_data)

        if obj_in.role_ids:
            result = await db.execute(select(Role).where(Role.id.in_(obj_in.role_ids)))
            db_obj.roles = list(result.scalars().all())
        else:
            db_obj.roles = []

        return await self._persist(db, db_obj, commit)


class CRUDRole(CRUDBase[Role, dict, dict]):
    """CRUD operations for Role."""

    async def get_by_name(self, db: AsyncSession, *, name: str) -> Optional[Role]:
        """Get role by name."""
        result = await db.execute(select(Role).where(Role.name == name))
        return result.scalar_one_or_none()


user = CRUDUser(User)
role = CRUDRole(Role)
