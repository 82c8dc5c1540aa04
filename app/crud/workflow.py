"""Workflow stage graph CRUD operations."""
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.base import CRUDBase
from app.models.workflow import (
    Workflow,
    WorkflowStage,
    WorkflowStageAssignment,
    WorkflowStageConnection,
    WorkflowStageType,
)
from app.schemas.workflow import WorkflowUpdate


class CRUDWorkflow(CRUDBase[Workflow, dict, WorkflowUpdate]):
    """CRUD operations for Workflow."""

    async def get_by_project(self, db: AsyncSession, *, project_id: UUID) -> List[Workflow]:
        result = await db.execute(
            select(Workflow)
            .where(Workflow.project_id == project_id)
            .order_by(Workflow.created_at)
        )
        return list(result.scalars().all())


class CRUDWorkflowStage(CRUDBase[WorkflowStage, dict, dict]):
    """CRUD operations for WorkflowStage."""

    async def get_by_workflow(self, db: AsyncSession, *, workflow_id: UUID) -> List[WorkflowStage]:
        """Stages of a workflow in stage order."""
        result = await db.execute(
            select(WorkflowStage)
            .where(WorkflowStage.workflow_id == workflow_id)
            .order_by(WorkflowStage.stage_order, WorkflowStage.created_at)
        )
        return list(result.scalars().all())

    async def get_initial_stage(self, db: AsyncSession, *, workflow_id: UUID) -> Optional[WorkflowStage]:
        result = await db.execute(
            select(WorkflowStage)
            .where(
                WorkflowStage.workflow_id == workflow_id,
                WorkflowStage.is_initial_stage.is_(True),
            )
            .order_by(WorkflowStage.stage_order)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_first_of_type(
        self, db: AsyncSession, *, workflow_id: UUID, stage_type: WorkflowStageType
    ) -> Optional[WorkflowStage]:
        """Stage of the given type with the lowest stage order."""
        result = await db.execute(
            select(WorkflowStage)
            .where(
                WorkflowStage.workflow_id == workflow_id,
                WorkflowStage.stage_type == stage_type,
            )
            .order_by(WorkflowStage.stage_order)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_following(self, db: AsyncSession, *, stage: WorkflowStage) -> Optional[WorkflowStage]:
        """Next stage by stage order, used when a stage has no outgoing connection."""
        result = await db.execute(
            select(WorkflowStage)
            .where(
                WorkflowStage.workflow_id == stage.workflow_id,
                WorkflowStage.stage_order > stage.stage_order,
            )
            .order_by(WorkflowStage.stage_order)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_data_source_usages(
        self,
        db: AsyncSession,
        *,
        project_id: UUID,
        data_source_id: UUID,
        exclude_stage_id: Optional[UUID] = None,
        exclude_workflow_id: Optional[UUID] = None,
        include_completion: bool = False,
    ) -> List[Tuple[WorkflowStage, Workflow]]:
        """Stages in the project that read from or write to a data source."""
        query = (
            select(WorkflowStage, Workflow)
            .join(Workflow, Workflow.id == WorkflowStage.workflow_id)
            .where(
                Workflow.project_id == project_id,
                or_(
                    WorkflowStage.input_data_source_id == data_source_id,
                    WorkflowStage.target_data_source_id == data_source_id,
                ),
            )
            .order_by(Workflow.name, WorkflowStage.stage_order)
        )
        if not include_completion:
            query = query.where(WorkflowStage.stage_type != WorkflowStageType.COMPLETION)
        if exclude_stage_id is not None:
            query = query.where(WorkflowStage.id != exclude_stage_id)
        if exclude_workflow_id is not None:
            query = query.where(WorkflowStage.workflow_id != exclude_workflow_id)
        result = await db.execute(query)
        return [(row[0], row[1]) for row in result.all()]


class CRUDWorkflowStageConnection(CRUDBase[WorkflowStageConnection, dict, dict]):
    """CRUD operations for WorkflowStageConnection."""

    async def get_outgoing(self, db: AsyncSession, *, stage_id: UUID) -> List[WorkflowStageConnection]:
        result = await db.execute(
            select(WorkflowStageConnection)
            .where(WorkflowStageConnection.from_stage_id == stage_id)
            .order_by(WorkflowStageConnection.created_at)
        )
        return list(result.scalars().all())

    async def get_incoming(self, db: AsyncSession, *, stage_id: UUID) -> List[WorkflowStageConnection]:
        result = await db.execute(
            select(WorkflowStageConnection)
            .where(WorkflowStageConnection.to_stage_id == stage_id)
            .order_by(WorkflowStageConnection.created_at)
        )
        return list(result.scalars().all())

    async def get_between(
        self, db: AsyncSession, *, from_stage_id: UUID, to_stage_id: UUID
    ) -> Optional[WorkflowStageConnection]:
        result = await db.execute(
            select(WorkflowStageConnection).where(
                WorkflowStageConnection.from_stage_id == from_stage_id,
                WorkflowStageConnection.to_stage_id == to_stage_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_by_workflow(self, db: AsyncSession, *, workflow_id: UUID) -> List[WorkflowStageConnection]:
        result = await db.execute(
            select(WorkflowStageConnection)
            .join(WorkflowStage, WorkflowStage.id == WorkflowStageConnection.from_stage_id)
            .where(WorkflowStage.workflow_id == workflow_id)
            .order_by(WorkflowStage.stage_order, WorkflowStageConnection.created_at)
        )
        return list(result.scalars().all())


class CRUDWorkflowStageAssignment(CRUDBase[WorkflowStageAssignment, dict, dict]):
    """CRUD operations for WorkflowStageAssignment."""

    async def get_by_stage(self, db: AsyncSession, *, stage_id: UUID) -> List[WorkflowStageAssignment]:
        result = await db.execute(
            select(WorkflowStageAssignment).where(WorkflowStageAssignment.workflow_stage_id == stage_id)
        )
        return list(result.scalars().all())


workflow = CRUDWorkflow(Workflow)
workflow_stage = CRUDWorkflowStage(WorkflowStage)
workflow_stage_connection = CRUDWorkflowStageConnection(WorkflowStageConnection)
workflow_stage_assignment = CRUDWorkflowStageAssignment(WorkflowStageAssignment)
