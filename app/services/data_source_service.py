"""Provisioning of the data pools backing default workflow stages."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.crud.data_source import data_source
from app.models.data_source import DataSource, DataSourceStatus, DataSourceType

logger = logging.getLogger(__name__)

REVIEW_KEYWORDS = ("review", "revision")
COMPLETION_KEYWORDS = ("completion", "complete", "final")


@dataclass
class WorkflowDataSources:
    """Pools chosen for the default stages of one workflow."""

    annotation: DataSource
    completion: DataSource
    review: Optional[DataSource] = None


def _matches(pool: DataSource, keywords: Sequence[str]) -> bool:
    name = (pool.name or "").lower()
    return any(keyword in name for keyword in keywords)


class DataSourceService:
    """Find or create the per-stage pools of a project."""

    @staticmethod
    def pick_annotation_pool(pools: List[DataSource]) -> Optional[DataSource]:
        for pool in pools:
            if pool.is_default:
                return pool
        for pool in pools:
            if not _matches(pool, REVIEW_KEYWORDS) and not _matches(pool, COMPLETION_KEYWORDS):
                return pool
        return None

    @staticmethod
    def pick_review_pool(pools: List[DataSource]) -> Optional[DataSource]:
        return next((pool for pool in pools if _matches(pool, REVIEW_KEYWORDS)), None)

    @staticmethod
    def pick_completion_pool(pools: List[DataSource]) -> Optional[DataSource]:
        return next(
            (pool for pool in pools if _matches(pool, COMPLETION_KEYWORDS) and not pool.is_default),
            None,
        )

    async def create_pool(
        self,
        db: AsyncSession,
        *,
        project_id: UUID,
        name: str,
        description: Optional[str] = None,
        is_default: bool = False,
        commit: bool = True,
    ) -> DataSource:
        pool = await data_source.create(
            db,
            obj_in={
                "project_id": project_id,
                "name": name,
                "description": description,
                "source_type": DataSourceType.MINIO_BUCKET,
                "status": DataSourceStatus.ACTIVE,
                "is_default": is_default,
            },
            commit=commit,
        )
        logger.info("Created data source %s (%s) for project %s", pool.name, pool.id, project_id)
        return pool

    async def ensure_required_data_sources(
        self,
        db: AsyncSession,
        *,
        project_id: UUID,
        include_review: bool,
        commit: bool = False,
    ) -> WorkflowDataSources:
        """Reuse existing pools by naming heuristic and create the missing ones."""
        pools = await data_source.get_by_project(db, project_id=project_id)

        annotation = self.pick_annotation_pool(pools)
        if annotation is None:
            annotation = await self.create_pool(
                db,
                project_id=project_id,
                name=settings.DEFAULT_ANNOTATION_SOURCE_NAME,
                description="Assets waiting for annotation",
                is_default=not pools,
                commit=commit,
            )

        review = None
        if include_review:
            review = self.pick_review_pool(pools)
            if review is None:
                review = await self.create_pool(
                    db,
                    project_id=project_id,
                    name=settings.DEFAULT_REVIEW_SOURCE_NAME,
                    description="Assets waiting for review",
                    commit=commit,
                )

        completion = self.pick_completion_pool(pools)
        if completion is None:
            completion = await self.create_pool(
                db,
                project_id=project_id,
                name=settings.DEFAULT_COMPLETION_SOURCE_NAME,
                description="Assets that finished the workflow",
                commit=commit,
            )

        return WorkflowDataSources(annotation=annotation, review=review, completion=completion)


data_source_service = DataSourceService()
