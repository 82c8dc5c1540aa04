"""Task event CRUD operations."""
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.base import CRUDBase
from app.models.task import Task, TaskEvent, TaskEventType

CHANGES_REQUIRED_MARKER = "CHANGES_REQUIRED"


class CRUDTaskEvent(CRUDBase[TaskEvent, dict, dict]):
    """Append-only access to task events."""

    async def update(self, db: AsyncSession, **kwargs) -> TaskEvent:
        raise NotImplementedError("Task events are append-only")

    async def remove(self, db: AsyncSession, **kwargs) -> Optional[TaskEvent]:
        raise NotImplementedError("Task events are append-only")

    async def get_by_task(self, db: AsyncSession, *, task_id: UUID) -> List[TaskEvent]:
        result = await db.execute(
            select(TaskEvent)
            .where(TaskEvent.task_id == task_id)
            .order_by(TaskEvent.created_at, TaskEvent.id)
        )
        return list(result.scalars().all())

    def _veto_filter(self, project_id: UUID):
        return (
            Task.project_id == project_id,
            TaskEvent.event_type == TaskEventType.STATUS_CHANGED,
            TaskEvent.details.is_not(None),
            TaskEvent.details.contains(CHANGES_REQUIRED_MARKER),
        )

    async def count_vetoes(self, db: AsyncSession, *, project_id: UUID) -> int:
        result = await db.execute(
            select(func.count(TaskEvent.id))
            .join(Task, Task.id == TaskEvent.task_id)
            .where(*self._veto_filter(project_id))
        )
        return int(result.scalar_one())

    async def count_vetoes_by_user(self, db: AsyncSession, *, project_id: UUID) -> Dict[Optional[UUID], int]:
        result = await db.execute(
            select(TaskEvent.user_id, func.count(TaskEvent.id))
            .join(Task, Task.id == TaskEvent.task_id)
            .where(*self._veto_filter(project_id))
            .group_by(TaskEvent.user_id)
        )
        return {user_id: int(count) for user_id, count in result.all()}


task_event = CRUDTaskEvent(TaskEvent)
