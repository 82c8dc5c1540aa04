"""Project role lookups used by permission checks."""
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.project import project_member
from app.models.project import ProjectRole


class ProjectMembershipService:
    """Resolve a user's role inside a project."""

    async def get_role(self, db: AsyncSession, *, project_id: UUID, user_id: UUID) -> Optional[ProjectRole]:
        """Return the member's role, or None when the user is not a member."""
        membership = await project_member.get_membership(db, project_id=project_id, user_id=user_id)
        if membership is None:
            return None
        return ProjectRole(membership.role)

    async def is_member(self, db: AsyncSession, *, project_id: UUID, user_id: UUID) -> bool:
        return await self.get_role(db, project_id=project_id, user_id=user_id) is not None

    async def has_role(
        self,
        db: AsyncSession,
        *,
        project_id: UUID,
        user_id: UUID,
        roles: set,
    ) -> bool:
        role = await self.get_role(db, project_id=project_id, user_id=user_id)
        return role is not None and role in roles


membership_service = ProjectMembershipService()
