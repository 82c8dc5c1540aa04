"""Data source and asset CRUD operations."""
from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.base import CRUDBase
from app.models.data_source import Asset, DataSource


class CRUDDataSource(CRUDBase[DataSource, dict, dict]):
    """CRUD operations for DataSource."""

    async def get_by_project(self, db: AsyncSession, *, project_id: UUID) -> List[DataSource]:
        """Pools of a project, oldest first."""
        result = await db.execute(
            select(DataSource)
            .where(DataSource.project_id == project_id)
            .order_by(DataSource.created_at, DataSource.name)
        )
        return list(result.scalars().all())


class CRUDAsset(CRUDBase[Asset, dict, dict]):
    """CRUD operations for Asset."""

    async def get_by_data_source(self, db: AsyncSession, *, data_source_id: UUID) -> List[Asset]:
        result = await db.execute(
            select(Asset)
            .where(Asset.data_source_id == data_source_id)
            .order_by(Asset.created_at)
        )
        return list(result.scalars().all())


data_source = CRUDDataSource(DataSource)
asset = CRUDAsset(Asset)
