"""Completion and veto pipelines."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import TaskStatusTransitionError
from app.localization.helpers import get_translation
from app.middleware.metrics import workflow_pipeline_runs_total
from app.models.project import ProjectRole
from app.models.task import Task, TaskStatus
from app.models.workflow import WorkflowStageType
from app.services.asset_movement_service import asset_movement_coordinator
from app.services.project_membership_service import membership_service
from app.services.task_event_service import changes_required_details
from app.services.task_service import task_service

logger = logging.getLogger(__name__)

VETO_ROLES = {ProjectRole.REVIEWER, ProjectRole.MANAGER}
ALREADY_VETOED = {TaskStatus.VETOED, TaskStatus.CHANGES_REQUIRED}


@dataclass
class PipelineResult:
    """Outcome of a pipeline run.

    ``success`` with an ``error_message`` means the status change was
    committed but the asset hand-off did not fully happen.
    """

    success: bool
    status_changed: bool = False
    moved_asset: bool = False
    tasks_created: int = 0
    target_stage_id: Optional[UUID] = None
    error_message: Optional[str] = None
    task: Optional[Task] = None

    @classmethod
    def failure(cls, message: str, task: Optional[Task] = None) -> "PipelineResult":
        return cls(success=False, error_message=message, task=task)


def _is_assigned_elsewhere(task_obj: Task, user_id: UUID) -> bool:
    return task_obj.assigned_to_user_id is not None and task_obj.assigned_to_user_id != user_id


class TaskWorkflowService:
    """Run a task through completion or rejection and report what happened."""

    def _finish(self, pipeline: str, result: PipelineResult) -> PipelineResult:
        if not result.success:
            outcome = "denied"
        elif result.error_message:
            outcome = "partial"
        else:
            outcome = "success"
        workflow_pipeline_runs_total.labels(pipeline, outcome).inc()
        return result

    async def complete_task(self, db: AsyncSession, *, task_id: UUID, user_id: UUID) -> PipelineResult:
        task_obj = await task_service.get_task(db, task_id)
        if task_obj is None:
            return self._finish("completion", PipelineResult.failure(f"Task {task_id} not found"))

        role = await membership_service.get_role(db, project_id=task_obj.project_id, user_id=user_id)
        if role is None or role == ProjectRole.VIEWER:
            return self._finish(
                "completion", PipelineResult.failure(get_translation("errors.complete_forbidden"), task_obj)
            )
        if role != ProjectRole.MANAGER and _is_assigned_elsewhere(task_obj, user_id):
            return self._finish(
                "completion", PipelineResult.failure("Task is assigned to another user", task_obj)
            )
        if TaskStatus(task_obj.status) != TaskStatus.IN_PROGRESS:
            return self._finish(
                "completion",
                PipelineResult.failure(
                    f"Task must be IN_PROGRESS to complete (current: {TaskStatus(task_obj.status).value})",
                    task_obj,
                ),
            )

        stage = await task_service.get_stage_for_task(db, task_obj)
        try:
            task_obj = await task_service.change_task_status(
                db, task_id=task_id, target_status=TaskStatus.COMPLETED, user_id=user_id, move_asset=False
            )
        except TaskStatusTransitionError as exc:
            return self._finish("completion", PipelineResult.failure(exc.detail, task_obj))

        movement = await task_service.run_asset_movement(
            db, task_obj=task_obj, stage=stage, target_status=TaskStatus.COMPLETED, user_id=user_id
        )
        if movement.error_message:
            logger.error(
                "Task %s completed but hand-off to the next stage failed: %s", task_id, movement.error_message
            )
        await db.refresh(task_obj)
        return self._finish(
            "completion",
            PipelineResult(
                success=True,
                status_changed=True,
                moved_asset=movement.asset_moved,
                tasks_created=movement.tasks_created + movement.tasks_reopened,
                target_stage_id=movement.target_stage_id,
                error_message=movement.error_message,
                task=task_obj,
            ),
        )

    async def veto_task(
        self,
        db: AsyncSession,
        *,
        task_id: UUID,
        user_id: UUID,
        reason: Optional[str] = None,
    ) -> PipelineResult:
        task_obj = await task_service.get_task(db, task_id)
        if task_obj is None:
            return self._finish("veto", PipelineResult.failure(f"Task {task_id} not found"))

        role = await membership_service.get_role(db, project_id=task_obj.project_id, user_id=user_id)
        if role not in VETO_ROLES:
            return self._finish("veto", PipelineResult.failure(get_translation("errors.veto_forbidden"), task_obj))

        stage = await task_service.get_stage_for_task(db, task_obj)
        if WorkflowStageType(stage.stage_type) == WorkflowStageType.ANNOTATION:
            return self._finish("veto", PipelineResult.failure("Annotation tasks cannot be vetoed", task_obj))

        status = TaskStatus(task_obj.status)
        if status in ALREADY_VETOED:
            return self._finish("veto", PipelineResult.failure("Task has already been vetoed", task_obj))
        if status != TaskStatus.IN_PROGRESS:
            return self._finish(
                "veto",
                PipelineResult.failure(f"Only IN_PROGRESS tasks can be vetoed (current: {status.value})", task_obj),
            )
        if role == ProjectRole.REVIEWER and _is_assigned_elsewhere(task_obj, user_id):
            return self._finish(
                "veto", PipelineResult.failure("User is not authorized to veto this task", task_obj)
            )

        task_obj = await task_service.apply_system_status(
            db,
            task_obj,
            TaskStatus.CHANGES_REQUIRED,
            user_id=user_id,
            details=changes_required_details(reason),
        )
        logger.info("Task %s vetoed by %s", task_id, user_id)

        movement = await asset_movement_coordinator.handle_veto(
            db, task_obj=task_obj, stage=stage, user_id=user_id, reason=reason
        )
        if movement.error_message:
            logger.error("Task %s vetoed but return to annotation failed: %s", task_id, movement.error_message)
        await db.refresh(task_obj)
        return self._finish(
            "veto",
            PipelineResult(
                success=True,
                status_changed=True,
                moved_asset=movement.asset_moved,
                tasks_created=movement.tasks_created + movement.tasks_reopened,
                target_stage_id=movement.target_stage_id,
                error_message=movement.error_message,
                task=task_obj,
            ),
        )


task_workflow_service = TaskWorkflowService()
