"""Project and membership CRUD operations."""
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.base import CRUDBase
from app.models.project import Project, ProjectMember


class CRUDProject(CRUDBase[Project, dict, dict]):
    """CRUD operations for Project."""

    pass


class CRUDProjectMember(CRUDBase[ProjectMember, dict, dict]):
    """CRUD operations for ProjectMember."""

    async def get_membership(
        self, db: AsyncSession, *, project_id: UUID, user_id: UUID
    ) -> Optional[ProjectMember]:
        result = await db.execute(
            select(ProjectMember).where(
                ProjectMember.project_id == project_id,
                ProjectMember.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_by_project(self, db: AsyncSession, *, project_id: UUID) -> List[ProjectMember]:
        result = await db.execute(
            select(ProjectMember)
            .where(ProjectMember.project_id == project_id)
            .order_by(ProjectMember.joined_at)
        )
        return list(result.scalars().all())


project = CRUDProject(Project)
project_member = CRUDProjectMember(ProjectMember)
