"""Task CRUD operations."""
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.base import CRUDBase
from app.models.data_source import Asset, AssetStatus
from app.models.task import Task, TaskStatus


def _live_task_at_stage(stage_id: UUID):
    return exists().where(
        and_(
            Task.asset_id == Asset.id,
            Task.workflow_stage_id == stage_id,
            Task.status != TaskStatus.ARCHIVED,
        )
    )


class CRUDTask(CRUDBase[Task, dict, dict]):
    """CRUD operations for Task.

    A task is live until it is archived; archived tasks never block the
    creation of a new task for the same asset and stage.
    """

    async def get_live_for_asset_at_stage(
        self, db: AsyncSession, *, asset_id: UUID, stage_id: UUID
    ) -> Optional[Task]:
        result = await db.execute(
            select(Task)
            .where(
                Task.asset_id == asset_id,
                Task.workflow_stage_id == stage_id,
                Task.status != TaskStatus.ARCHIVED,
            )
            .order_by(Task.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_by_asset(self, db: AsyncSession, *, asset_id: UUID) -> List[Task]:
        result = await db.execute(
            select(Task).where(Task.asset_id == asset_id).order_by(Task.created_at)
        )
        return list(result.scalars().all())

    async def get_assets_without_task(
        self,
        db: AsyncSession,
        *,
        data_source_id: UUID,
        stage_id: UUID,
        workflow_id: Optional[UUID] = None,
    ) -> List[Asset]:
        """Imported assets in a pool that have no live task at the stage.

        With ``workflow_id`` only assets that already went through that
        workflow are returned, so a pool shared between workflows is not
        swept into the wrong one.
        """
        query = select(Asset).where(
            Asset.data_source_id == data_source_id,
            Asset.status == AssetStatus.IMPORTED,
            ~_live_task_at_stage(stage_id),
        )
        if workflow_id is not None:
            query = query.where(
                exists().where(and_(Task.asset_id == Asset.id, Task.workflow_id == workflow_id))
            )
        result = await db.execute(query.order_by(Asset.created_at))
        return list(result.scalars().all())

    async def count_completed(self, db: AsyncSession, *, project_id: UUID) -> int:
        result = await db.execute(
            select(func.count(Task.id)).where(
                Task.project_id == project_id,
                Task.completed_at.is_not(None),
            )
        )
        return int(result.scalar_one())


task = CRUDTask(Task)
