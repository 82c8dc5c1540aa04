"""Workflow construction: stages, pools and the connection chain in one transaction."""
from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.crud.project import project as project_crud
from app.crud.task import task as task_crud
from app.crud.workflow import workflow as workflow_crud, workflow_stage_assignment
from app.localization.helpers import get_translation
from app.models.workflow import Workflow, WorkflowStage, WorkflowStageType
from app.schemas.workflow import WorkflowCreate, WorkflowStageCreate, WorkflowUpdate
from app.services.data_source_service import data_source_service
from app.services.task_service import task_service
from app.services.workflow_stage_service import workflow_stage_service

logger = logging.getLogger(__name__)


class WorkflowService:
    """Create and maintain project workflows."""

    async def get_workflow(self, db: AsyncSession, workflow_id: UUID) -> Optional[Workflow]:
        return await workflow_crud.get(db, id=workflow_id)

    async def get_workflow_or_404(self, db: AsyncSession, workflow_id: UUID) -> Workflow:
        wf = await workflow_crud.get(db, id=workflow_id)
        if wf is None:
            raise NotFoundError(get_translation("errors.workflow_not_found"))
        return wf

    async def list_workflows(self, db: AsyncSession, project_id: UUID) -> List[Workflow]:
        return await workflow_crud.get_by_project(db, project_id=project_id)

    async def _create_default_stages(
        self,
        db: AsyncSession,
        *,
        wf: Workflow,
        include_review: bool,
    ) -> List[WorkflowStage]:
        pools = await data_source_service.ensure_required_data_sources(
            db, project_id=wf.project_id, include_review=include_review, commit=False
        )
        next_pool = pools.review if include_review else pools.completion

        specs = [
            WorkflowStageCreate(
                name="Annotation",
                description="Annotate incoming assets",
                stage_type=WorkflowStageType.ANNOTATION,
                is_initial_stage=True,
                is_final_stage=False,
                input_data_source_id=pools.annotation.id,
                target_data_source_id=next_pool.id,
            )
        ]
        if include_review:
            specs.append(
                WorkflowStageCreate(
                    name="Review",
                    description="Review annotations",
                    stage_type=WorkflowStageType.REVISION,
                    input_data_source_id=pools.review.id,
                    target_data_source_id=pools.completion.id,
                )
            )
        specs.append(
            WorkflowStageCreate(
                name="Completion",
                description="Finished assets",
                stage_type=WorkflowStageType.COMPLETION,
                is_final_stage=True,
                input_data_source_id=pools.completion.id,
            )
        )

        stages = []
        for position, spec in enumerate(specs):
            stages.append(
                await workflow_stage_service.create_stage(
                    db, workflow=wf, stage_in=spec, stage_order=position, commit=False
                )
            )
        await workflow_stage_service.link_linear_chain(db, stages=stages, commit=False)
        return stages

    async def _create_custom_stages(
        self,
        db: AsyncSession,
        *,
        wf: Workflow,
        workflow_in: WorkflowCreate,
    ) -> List[WorkflowStage]:
        specs = list(workflow_in.stages)
        flagged = [index for index, spec in enumerate(specs) if spec.is_initial_stage]
        if len(flagged) > 1:
            raise ValidationError("Only one stage can be the initial stage")
        initial_index = flagged[0] if flagged else 0

        stages = []
        for index, spec in enumerate(specs):
            if index == initial_index and not spec.is_initial_stage:
                spec = spec.model_copy(update={"is_initial_stage": True})
            order = spec.stage_order if spec.stage_order is not None else index
            stages.append(
                await workflow_stage_service.create_stage(
                    db, workflow=wf, stage_in=spec, stage_order=order, commit=False
                )
            )

        if workflow_in.connections:
            for spec in workflow_in.connections:
                await workflow_stage_service.create_connection(
                    db,
                    from_stage_id=stages[spec.from_index].id,
                    to_stage_id=stages[spec.to_index].id,
                    condition=spec.condition,
                    commit=False,
                )
        else:
            await workflow_stage_service.link_linear_chain(db, stages=stages, commit=False)
        return stages

    async def create_workflow(
        self,
        db: AsyncSession,
        *,
        project_id: UUID,
        workflow_in: WorkflowCreate,
        acting_user_id: Optional[UUID] = None,
    ) -> Workflow:
        """Build a workflow with its stages, pools and connections.

        Everything up to the connections is one transaction; any failure rolls
        it back. Seeding tasks for the initial stage runs afterwards and never
        fails the call.
        """
        if await project_crud.get(db, id=project_id) is None:
            raise NotFoundError("Project not found")

        try:
            wf = await workflow_crud.create(
                db,
                obj_in={
                    "project_id": project_id,
                    "name": workflow_in.name,
                    "description": workflow_in.description,
                    "label_scheme_id": workflow_in.label_scheme_id,
                    "created_by": acting_user_id,
                },
                commit=False,
            )
            if workflow_in.stages:
                await self._create_custom_stages(db, wf=wf, workflow_in=workflow_in)
            elif workflow_in.create_default_stages:
                await self._create_default_stages(
                    db, wf=wf, include_review=workflow_in.include_review_stage
                )
            await db.commit()
        except Exception:
            await db.rollback()
            logger.warning("Workflow creation for project %s rolled back", project_id)
            raise

        workflow_id = wf.id
        logger.info("Created workflow %s (%s) for project %s", workflow_in.name, workflow_id, project_id)

        if settings.SEED_TASKS_ON_WORKFLOW_CREATE:
            await self._seed_initial_tasks(db, project_id=project_id, workflow_id=workflow_id)

        wf = await self.get_workflow_or_404(db, workflow_id)
        await db.refresh(wf, attribute_names=["stages"])
        return wf

    async def _seed_initial_tasks(self, db: AsyncSession, *, project_id: UUID, workflow_id: UUID) -> int:
        try:
            initial = await workflow_stage_service.get_initial_stage(db, workflow_id)
            if initial is None or initial.input_data_source_id is None:
                return 0
            return await task_service.create_tasks_for_data_source(
                db,
                project_id=project_id,
                workflow_id=workflow_id,
                stage_id=initial.id,
                data_source_id=initial.input_data_source_id,
            )
        except SQLAlchemyError:
            logger.exception("Could not seed tasks for workflow %s", workflow_id)
            await db.rollback()
            return 0

    async def update_workflow(self, db: AsyncSession, *, workflow_id: UUID, workflow_in: WorkflowUpdate) -> Workflow:
        wf = await self.get_workflow_or_404(db, workflow_id)
        wf = await workflow_crud.update(db, db_obj=wf, obj_in=workflow_in)
        await db.refresh(wf, attribute_names=["stages"])
        return wf

    async def delete_workflow(self, db: AsyncSession, *, workflow_id: UUID) -> None:
        """Delete a workflow that has no tasks, with its stages and connections."""
        wf = await self.get_workflow_or_404(db, workflow_id)
        if await task_crud.count(db, filters={"workflow_id": workflow_id}):
            raise ConflictError("Cannot delete a workflow that still has tasks")

        for connection in await workflow_stage_service.list_connections(db, workflow_id):
            await db.delete(connection)
        for stage in await workflow_stage_service.list_stages(db, workflow_id):
            for assignment in await workflow_stage_assignment.get_by_stage(db, stage_id=stage.id):
                await db.delete(assignment)
        await db.flush()
        await db.delete(wf)
        await db.commit()
        logger.info("Deleted workflow %s", workflow_id)


workflow_service = WorkflowService()
