"""Stage graph operations: stages, connections, pool exclusivity and lookups."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, DataSourceConflictError, NotFoundError, ValidationError
from app.crud.task import task as task_crud
from app.crud.workflow import (
    workflow as workflow_crud,
    workflow_stage,
    workflow_stage_assignment,
    workflow_stage_connection,
)
from app.localization.helpers import get_translation
from app.models.workflow import (
    Workflow,
    WorkflowStage,
    WorkflowStageConnection,
    WorkflowStageType,
)
from app.schemas.workflow import WorkflowStageCreate, WorkflowStageUpdate

logger = logging.getLogger(__name__)

POOL_FIELDS = ("input_data_source_id", "target_data_source_id")


def _usage_entry(stage: WorkflowStage, wf: Workflow, data_source_id: UUID) -> Dict[str, Any]:
    usage = "input" if stage.input_data_source_id == data_source_id else "target"
    return {
        "stage_id": stage.id,
        "stage_name": stage.name,
        "stage_type": WorkflowStageType(stage.stage_type).value,
        "workflow_id": wf.id,
        "workflow_name": wf.name,
        "usage": usage,
    }


class WorkflowStageService:
    """Build and query the directed stage graph of a workflow."""

    # ------------------------------------------------------------------
    # Data source exclusivity
    # ------------------------------------------------------------------
    async def _is_terminal_pool(self, db: AsyncSession, *, project_id: UUID, data_source_id: UUID) -> bool:
        usages = await workflow_stage.get_data_source_usages(
            db, project_id=project_id, data_source_id=data_source_id, include_completion=True
        )
        return any(
            stage.stage_type == WorkflowStageType.COMPLETION and stage.input_data_source_id == data_source_id
            for stage, _ in usages
        )

    async def find_data_source_conflicts(
        self,
        db: AsyncSession,
        *,
        project_id: UUID,
        workflow_id: UUID,
        stage_type: WorkflowStageType,
        input_data_source_id: Optional[UUID],
        target_data_source_id: Optional[UUID],
        exclude_stage_id: Optional[UUID] = None,
    ) -> List[Dict[str, Any]]:
        """Stages that already claim the pools a stage wants to use.

        Completion stages never conflict. Another workflow's non-completion
        stage referencing the pool in any role is a conflict. Inside one
        workflow a pool may be the target of one stage and the input of the
        next, but not the input (or target) of two stages. Target references
        to a pool feeding a completion stage are allowed.
        """
        if WorkflowStageType(stage_type) == WorkflowStageType.COMPLETION:
            return []

        conflicts: List[Dict[str, Any]] = []
        seen = set()
        checks = (
            ("input_data_source_id", input_data_source_id),
            ("target_data_source_id", target_data_source_id),
        )
        for field, pool_id in checks:
            if pool_id is None:
                continue
            if field == "target_data_source_id" and await self._is_terminal_pool(
                db, project_id=project_id, data_source_id=pool_id
            ):
                continue
            usages = await workflow_stage.get_data_source_usages(
                db,
                project_id=project_id,
                data_source_id=pool_id,
                exclude_stage_id=exclude_stage_id,
            )
            for other, wf in usages:
                same_workflow = other.workflow_id == workflow_id
                if same_workflow and getattr(other, field) != pool_id:
                    continue
                if other.id in seen:
                    continue
                seen.add(other.id)
                conflicts.append(_usage_entry(other, wf, pool_id))
        return conflicts

    async def ensure_data_sources_available(
        self,
        db: AsyncSession,
        *,
        project_id: UUID,
        workflow_id: UUID,
        stage_name: str,
        stage_type: WorkflowStageType,
        input_data_source_id: Optional[UUID],
        target_data_source_id: Optional[UUID],
        exclude_stage_id: Optional[UUID] = None,
    ) -> None:
        conflicts = await self.find_data_source_conflicts(
            db,
            project_id=project_id,
            workflow_id=workflow_id,
            stage_type=stage_type,
            input_data_source_id=input_data_source_id,
            target_data_source_id=target_data_source_id,
            exclude_stage_id=exclude_stage_id,
        )
        if conflicts:
            logger.info(
                "Data source conflict for stage %s in workflow %s: %s",
                stage_name,
                workflow_id,
                [item["stage_name"] for item in conflicts],
            )
            raise DataSourceConflictError(conflicts, stage_name=stage_name)

    async def get_data_source_conflicts(
        self,
        db: AsyncSession,
        *,
        project_id: UUID,
        data_source_id: UUID,
        exclude_workflow_id: Optional[UUID] = None,
    ) -> List[Dict[str, Any]]:
        """Non-completion stages that use a data source, optionally ignoring one workflow."""
        usages = await workflow_stage.get_data_source_usages(
            db,
            project_id=project_id,
            data_source_id=data_source_id,
            exclude_workflow_id=exclude_workflow_id,
        )
        return [_usage_entry(stage, wf, data_source_id) for stage, wf in usages]

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------
    async def get_stage(self, db: AsyncSession, stage_id: UUID) -> Optional[WorkflowStage]:
        return await workflow_stage.get(db, id=stage_id)

    async def get_stage_or_404(self, db: AsyncSession, stage_id: UUID) -> WorkflowStage:
        stage = await workflow_stage.get(db, id=stage_id)
        if stage is None:
            raise NotFoundError(get_translation("errors.stage_not_found"))
        return stage

    async def list_stages(self, db: AsyncSession, workflow_id: UUID) -> List[WorkflowStage]:
        return await workflow_stage.get_by_workflow(db, workflow_id=workflow_id)

    async def create_stage(
        self,
        db: AsyncSession,
        *,
        workflow: Workflow,
        stage_in: WorkflowStageCreate,
        stage_order: Optional[int] = None,
        commit: bool = True,
    ) -> WorkflowStage:
        """Create one stage after checking its pools are free."""
        await self.ensure_data_sources_available(
            db,
            project_id=workflow.project_id,
            workflow_id=workflow.id,
            stage_name=stage_in.name,
            stage_type=stage_in.stage_type,
            input_data_source_id=stage_in.input_data_source_id,
            target_data_source_id=stage_in.target_data_source_id,
        )
        if stage_order is None:
            stage_order = stage_in.stage_order
        if stage_order is None:
            stage_order = len(await workflow_stage.get_by_workflow(db, workflow_id=workflow.id))

        stage = await workflow_stage.create(
            db,
            obj_in={
                "workflow_id": workflow.id,
                "name": stage_in.name,
                "description": stage_in.description,
                "stage_type": stage_in.stage_type,
                "stage_order": stage_order,
                "is_initial_stage": stage_in.is_initial_stage,
                "is_final_stage": stage_in.is_final_stage,
                "input_data_source_id": stage_in.input_data_source_id,
                "target_data_source_id": stage_in.target_data_source_id,
            },
            commit=False,
        )
        for member_id in stage_in.assigned_project_member_ids:
            await workflow_stage_assignment.create(
                db,
                obj_in={"workflow_stage_id": stage.id, "project_member_id": member_id},
                commit=False,
            )
        if commit:
            await db.commit()
            await db.refresh(stage)
        logger.info("Created %s stage %s (%s) in workflow %s", stage.stage_type, stage.name, stage.id, workflow.id)
        return stage

    async def update_stage(
        self,
        db: AsyncSession,
        *,
        stage_id: UUID,
        stage_in: WorkflowStageUpdate,
    ) -> WorkflowStage:
        """Apply a partial update, re-checking pool exclusivity when pools or type change."""
        stage = await self.get_stage_or_404(db, stage_id)
        changes = stage_in.model_dump(exclude_unset=True)
        merged = {
            "name": stage.name,
            "stage_type": stage.stage_type,
            "input_data_source_id": stage.input_data_source_id,
            "target_data_source_id": stage.target_data_source_id,
        }
        merged.update({key: value for key, value in changes.items() if key in merged})

        if any(field in changes for field in POOL_FIELDS + ("stage_type",)):
            wf = await workflow_crud.get(db, id=stage.workflow_id)
            await self.ensure_data_sources_available(
                db,
                project_id=wf.project_id,
                workflow_id=wf.id,
                stage_name=merged["name"],
                stage_type=merged["stage_type"],
                input_data_source_id=merged["input_data_source_id"],
                target_data_source_id=merged["target_data_source_id"],
                exclude_stage_id=stage.id,
            )
        return await workflow_stage.update(db, db_obj=stage, obj_in=changes)

    async def delete_stage(self, db: AsyncSession, *, stage_id: UUID) -> None:
        stage = await self.get_stage_or_404(db, stage_id)
        if await task_crud.count(db, filters={"workflow_stage_id": stage.id}):
            raise ConflictError("Cannot delete a stage that still has tasks")
        for connection in await workflow_stage_connection.get_outgoing(db, stage_id=stage.id):
            await workflow_stage_connection.remove(db, id=connection.id, commit=False)
        for connection in await workflow_stage_connection.get_incoming(db, stage_id=stage.id):
            await workflow_stage_connection.remove(db, id=connection.id, commit=False)
        for assignment in await workflow_stage_assignment.get_by_stage(db, stage_id=stage.id):
            await workflow_stage_assignment.remove(db, id=assignment.id, commit=False)
        await workflow_stage.remove(db, id=stage.id)
        logger.info("Deleted stage %s from workflow %s", stage.id, stage.workflow_id)

    async def reorder_stages(
        self, db: AsyncSession, *, workflow_id: UUID, stage_ids: List[UUID]
    ) -> List[WorkflowStage]:
        """Rewrite stage_order to follow the given id sequence."""
        stages = await workflow_stage.get_by_workflow(db, workflow_id=workflow_id)
        by_id = {stage.id: stage for stage in stages}
        if len(stage_ids) != len(set(stage_ids)) or set(stage_ids) != set(by_id):
            raise ValidationError("Stage order must list every stage of the workflow exactly once")
        for position, stage_id in enumerate(stage_ids):
            await workflow_stage.update(
                db, db_obj=by_id[stage_id], obj_in={"stage_order": position}, commit=False
            )
        await db.commit()
        return await workflow_stage.get_by_workflow(db, workflow_id=workflow_id)

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------
    async def create_connection(
        self,
        db: AsyncSession,
        *,
        from_stage_id: UUID,
        to_stage_id: UUID,
        condition: Optional[str] = None,
        commit: bool = True,
    ) -> WorkflowStageConnection:
        if from_stage_id == to_stage_id:
            raise ValidationError(get_translation("errors.self_connection"))
        from_stage = await self.get_stage_or_404(db, from_stage_id)
        to_stage = await self.get_stage_or_404(db, to_stage_id)
        if from_stage.workflow_id != to_stage.workflow_id:
            raise ValidationError("Connected stages must belong to the same workflow")
        existing = await workflow_stage_connection.get_between(
            db, from_stage_id=from_stage_id, to_stage_id=to_stage_id
        )
        if existing is not None:
            raise ConflictError(get_translation("errors.duplicate_connection"))
        return await workflow_stage_connection.create(
            db,
            obj_in={"from_stage_id": from_stage_id, "to_stage_id": to_stage_id, "condition": condition},
            commit=commit,
        )

    async def link_linear_chain(
        self, db: AsyncSession, *, stages: List[WorkflowStage], commit: bool = True
    ) -> List[WorkflowStageConnection]:
        """Connect stages one after another in stage order."""
        ordered = sorted(stages, key=lambda stage: stage.stage_order)
        connections = []
        for current, following in zip(ordered, ordered[1:]):
            connections.append(
                await self.create_connection(
                    db, from_stage_id=current.id, to_stage_id=following.id, commit=False
                )
            )
        if commit:
            await db.commit()
        return connections

    async def list_connections(self, db: AsyncSession, workflow_id: UUID) -> List[WorkflowStageConnection]:
        return await workflow_stage_connection.get_by_workflow(db, workflow_id=workflow_id)

    async def delete_connection(self, db: AsyncSession, *, connection_id: UUID) -> None:
        removed = await workflow_stage_connection.remove(db, id=connection_id)
        if removed is None:
            raise NotFoundError()

    # ------------------------------------------------------------------
    # Resolver
    # ------------------------------------------------------------------
    async def get_next_stage(self, db: AsyncSession, stage: WorkflowStage) -> Optional[WorkflowStage]:
        """Follow the first outgoing connection, else the next stage by order."""
        outgoing = await workflow_stage_connection.get_outgoing(db, stage_id=stage.id)
        if outgoing:
            return await workflow_stage.get(db, id=outgoing[0].to_stage_id)
        return await workflow_stage.get_following(db, stage=stage)

    async def get_initial_stage(self, db: AsyncSession, workflow_id: UUID) -> Optional[WorkflowStage]:
        stage = await workflow_stage.get_initial_stage(db, workflow_id=workflow_id)
        if stage is not None:
            return stage
        stages = await workflow_stage.get_by_workflow(db, workflow_id=workflow_id)
        return stages[0] if stages else None

    async def get_first_annotation_stage(self, db: AsyncSession, workflow_id: UUID) -> Optional[WorkflowStage]:
        return await workflow_stage.get_first_of_type(
            db, workflow_id=workflow_id, stage_type=WorkflowStageType.ANNOTATION
        )


workflow_stage_service = WorkflowStageService()
