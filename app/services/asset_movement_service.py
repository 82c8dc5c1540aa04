"""Hand-off of assets between stage pools after status changes."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.data_source import asset as asset_crud
from app.crud.task import task as task_crud
from app.models.task import Task, TaskEventType, TaskStatus
from app.models.workflow import WorkflowStage, WorkflowStageType
from app.services.task_event_service import task_event_service
from app.services.task_service import task_service
from app.services.task_status_validator import ready_status_for
from app.services.workflow_stage_service import workflow_stage_service

logger = logging.getLogger(__name__)

FORWARD_STAGE_TYPES = {WorkflowStageType.ANNOTATION, WorkflowStageType.REVISION}


@dataclass
class AssetMovementResult:
    """What the coordinator did for one status change."""

    asset_moved: bool = False
    should_archive_task: bool = False
    target_stage_id: Optional[UUID] = None
    target_data_source_id: Optional[UUID] = None
    tasks_created: int = 0
    tasks_reopened: int = 0
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error_message is None


class AssetMovementCoordinator:
    """Move an asset to the next (or first) stage's pool and make tasks for it there.

    Asset relocation is record-level: the asset's ``data_source_id`` is
    pointed at the destination pool. Stored objects are not copied.
    Every failure is reported through ``error_message``; nothing is raised
    because the triggering status change has already been committed.
    """

    async def handle_status_change(
        self,
        db: AsyncSession,
        *,
        task_obj: Task,
        stage: WorkflowStage,
        target_status: TaskStatus,
        user_id: Optional[UUID],
    ) -> AssetMovementResult:
        stage_type = WorkflowStageType(stage.stage_type)
        target_status = TaskStatus(target_status)
        task_id = task_obj.id
        try:
            if target_status == TaskStatus.COMPLETED and stage_type in FORWARD_STAGE_TYPES:
                return await self._advance(db, task_obj=task_obj, stage=stage, user_id=user_id)
            if target_status == TaskStatus.READY_FOR_ANNOTATION and stage_type == WorkflowStageType.COMPLETION:
                return await self._reopen(db, task_obj=task_obj, stage=stage, user_id=user_id)
        except Exception as exc:
            logger.exception("Asset movement failed for task %s", task_id)
            await db.rollback()
            return AssetMovementResult(error_message=str(exc) or exc.__class__.__name__)
        return AssetMovementResult()

    async def handle_veto(
        self,
        db: AsyncSession,
        *,
        task_obj: Task,
        stage: WorkflowStage,
        user_id: Optional[UUID],
        reason: Optional[str] = None,
    ) -> AssetMovementResult:
        """Send the asset back to the first annotation stage for rework."""
        task_id = task_obj.id
        try:
            return await self._send_back(db, task_obj=task_obj, stage=stage, user_id=user_id, reason=reason)
        except Exception as exc:
            logger.exception("Asset movement failed for vetoed task %s", task_id)
            await db.rollback()
            return AssetMovementResult(error_message=str(exc) or exc.__class__.__name__)

    async def _relocate_asset(
        self,
        db: AsyncSession,
        *,
        task_obj: Task,
        from_stage: WorkflowStage,
        to_stage: WorkflowStage,
        user_id: Optional[UUID],
    ) -> bool:
        pool_id = to_stage.input_data_source_id
        if pool_id is None:
            return False
        asset_obj = await asset_crud.get(db, id=task_obj.asset_id)
        if asset_obj is None:
            raise LookupError(f"Asset {task_obj.asset_id} not found")

        previous_pool = asset_obj.data_source_id
        if previous_pool != pool_id:
            await asset_crud.update(db, db_obj=asset_obj, obj_in={"data_source_id": pool_id}, commit=False)
        await task_event_service.record(
            db,
            task=task_obj,
            event_type=TaskEventType.ASSET_MOVED,
            user_id=user_id,
            details=f"Asset moved from data source {previous_pool} to {pool_id}",
            from_stage_id=from_stage.id,
            to_stage_id=to_stage.id,
        )
        await db.commit()
        logger.info("Asset %s moved to data source %s for stage %s", asset_obj.id, pool_id, to_stage.id)
        return True

    async def _reset_or_create(
        self,
        db: AsyncSession,
        *,
        stage: WorkflowStage,
        asset_id: UUID,
        project_id: UUID,
        status: TaskStatus,
        user_id: Optional[UUID],
        details: Optional[str],
        result: AssetMovementResult,
    ) -> None:
        existing = await task_crud.get_live_for_asset_at_stage(db, asset_id=asset_id, stage_id=stage.id)
        if existing is not None:
            if TaskStatus(existing.status) != status:
                await task_service.apply_system_status(
                    db, existing, status, user_id=user_id, details=details
                )
                result.tasks_reopened += 1
            return
        created = await task_service.create_task_for_asset(
            db,
            stage=stage,
            asset_id=asset_id,
            project_id=project_id,
            status=status,
            user_id=user_id,
            details=details,
        )
        if created is not None:
            result.tasks_created += 1

    async def _advance(
        self,
        db: AsyncSession,
        *,
        task_obj: Task,
        stage: WorkflowStage,
        user_id: Optional[UUID],
    ) -> AssetMovementResult:
        result = AssetMovementResult(should_archive_task=True)
        next_stage = await workflow_stage_service.get_next_stage(db, stage)
        if next_stage is None:
            logger.info("Stage %s has no next stage; task %s stays completed", stage.id, task_obj.id)
            return result

        result.target_stage_id = next_stage.id
        result.target_data_source_id = next_stage.input_data_source_id
        if next_stage.input_data_source_id is None:
            logger.info("Next stage %s has no input data source; nothing to move", next_stage.id)
            return result

        asset_id = task_obj.asset_id
        project_id = task_obj.project_id
        workflow_id = task_obj.workflow_id
        result.asset_moved = await self._relocate_asset(
            db, task_obj=task_obj, from_stage=stage, to_stage=next_stage, user_id=user_id
        )

        await self._reset_or_create(
            db,
            stage=next_stage,
            asset_id=asset_id,
            project_id=project_id,
            status=ready_status_for(WorkflowStageType(next_stage.stage_type)),
            user_id=user_id,
            details=f"Ready after completion in stage {stage.name}",
            result=result,
        )
        result.tasks_created += await task_service.create_tasks_for_data_source(
            db,
            project_id=project_id,
            workflow_id=workflow_id,
            stage_id=next_stage.id,
            data_source_id=next_stage.input_data_source_id,
            workflow_assets_only=True,
        )
        return result

    async def _reopen(
        self,
        db: AsyncSession,
        *,
        task_obj: Task,
        stage: WorkflowStage,
        user_id: Optional[UUID],
    ) -> AssetMovementResult:
        initial = await workflow_stage_service.get_initial_stage(db, stage.workflow_id)
        if initial is None:
            return AssetMovementResult(error_message=f"Workflow {stage.workflow_id} has no initial stage")

        result = AssetMovementResult(
            target_stage_id=initial.id, target_data_source_id=initial.input_data_source_id
        )
        asset_id = task_obj.asset_id
        project_id = task_obj.project_id
        result.asset_moved = await self._relocate_asset(
            db, task_obj=task_obj, from_stage=stage, to_stage=initial, user_id=user_id
        )
        await self._reset_or_create(
            db,
            stage=initial,
            asset_id=asset_id,
            project_id=project_id,
            status=ready_status_for(WorkflowStageType(initial.stage_type)),
            user_id=user_id,
            details="Reopened from completion stage",
            result=result,
        )
        return result

    async def _send_back(
        self,
        db: AsyncSession,
        *,
        task_obj: Task,
        stage: WorkflowStage,
        user_id: Optional[UUID],
        reason: Optional[str],
    ) -> AssetMovementResult:
        annotation_stage = await workflow_stage_service.get_first_annotation_stage(db, stage.workflow_id)
        if annotation_stage is None:
            return AssetMovementResult(error_message="No annotation stage found in workflow")

        result = AssetMovementResult(
            target_stage_id=annotation_stage.id,
            target_data_source_id=annotation_stage.input_data_source_id,
        )
        asset_id = task_obj.asset_id
        project_id = task_obj.project_id
        result.asset_moved = await self._relocate_asset(
            db, task_obj=task_obj, from_stage=stage, to_stage=annotation_stage, user_id=user_id
        )
        await self._reset_or_create(
            db,
            stage=annotation_stage,
            asset_id=asset_id,
            project_id=project_id,
            status=TaskStatus.READY_FOR_ANNOTATION,
            user_id=user_id,
            details=f"Returned for rework: {reason}" if reason else "Returned for rework",
            result=result,
        )
        return result


asset_movement_coordinator = AssetMovementCoordinator()
