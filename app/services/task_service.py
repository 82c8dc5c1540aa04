"""Task orchestration: creation, status transitions and assignment."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    TaskAssignmentError,
    TaskStatusTransitionError,
    ValidationError,
)
from app.crud.task import task as task_crud
from app.crud.user import user as user_crud
from app.crud.workflow import workflow_stage
from app.localization.helpers import get_translation
from app.middleware.metrics import task_status_transitions_total, tasks_created_total
from app.models.project import ProjectRole
from app.models.task import Task, TaskEventType, TaskStatus
from app.models.workflow import WorkflowStage, WorkflowStageType
from app.schemas.task import ADMIN_TIMESTAMP_FIELDS, TaskUpdate
from app.services.project_membership_service import membership_service
from app.services.task_event_service import task_event_service
from app.services.task_status_validator import ready_status_for, task_status_validator
from app.utils.timeutils import utcnow

if TYPE_CHECKING:
    from app.services.asset_movement_service import AssetMovementResult

logger = logging.getLogger(__name__)

STATUS_TIMESTAMP_FIELDS = {
    TaskStatus.COMPLETED: "completed_at",
    TaskStatus.ARCHIVED: "archived_at",
    TaskStatus.SUSPENDED: "suspended_at",
    TaskStatus.DEFERRED: "deferred_at",
    TaskStatus.VETOED: "vetoed_at",
    TaskStatus.CHANGES_REQUIRED: "changes_required_at",
}
WORKED_ON_STATUSES = {TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED}
UNASSIGNABLE_STATUSES = {TaskStatus.DEFERRED, TaskStatus.COMPLETED}


def _ensure_uuid(value) -> Optional[UUID]:
    """Normalize UUID values that may be returned as strings by SQLite."""
    if value is None or isinstance(value, UUID):
        return value
    return UUID(str(value))


class TaskService:
    """Transactional core for task lifecycle changes."""

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    async def get_task(self, db: AsyncSession, task_id: UUID) -> Optional[Task]:
        return await task_crud.get(db, id=task_id)

    async def get_task_or_404(self, db: AsyncSession, task_id: UUID) -> Task:
        task_obj = await task_crud.get(db, id=task_id)
        if task_obj is None:
            raise NotFoundError(get_translation("errors.task_not_found"))
        return task_obj

    async def get_stage_for_task(self, db: AsyncSession, task_obj: Task) -> WorkflowStage:
        stage = await workflow_stage.get(db, id=task_obj.workflow_stage_id)
        if stage is None:
            raise NotFoundError(get_translation("errors.stage_not_found"))
        return stage

    async def list_tasks_for_project(
        self,
        db: AsyncSession,
        *,
        project_id: UUID,
        status: Optional[TaskStatus] = None,
        workflow_stage_id: Optional[UUID] = None,
        assigned_to_user_id: Optional[UUID] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[List[Task], int]:
        filters = {
            "project_id": project_id,
            "status": status,
            "workflow_stage_id": workflow_stage_id,
            "assigned_to_user_id": assigned_to_user_id,
        }
        limit = min(limit, settings.MAX_PAGE_SIZE)
        items = await task_crud.get_multi(db, skip=skip, limit=limit, filters=filters)
        total = await task_crud.count(db, filters=filters)
        return items, total

    async def list_tasks_for_user(
        self,
        db: AsyncSession,
        *,
        user_id: UUID,
        project_id: Optional[UUID] = None,
        status: Optional[TaskStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[List[Task], int]:
        filters = {"assigned_to_user_id": user_id, "project_id": project_id, "status": status}
        limit = min(limit, settings.MAX_PAGE_SIZE)
        items = await task_crud.get_multi(db, skip=skip, limit=limit, filters=filters)
        total = await task_crud.count(db, filters=filters)
        return items, total

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------
    async def _create_task(
        self,
        db: AsyncSession,
        *,
        project_id: UUID,
        workflow_id: UUID,
        stage_id: UUID,
        asset_id: UUID,
        status: TaskStatus,
        user_id: Optional[UUID] = None,
        details: Optional[str] = None,
    ) -> Task:
        task_obj = await task_crud.create(
            db,
            obj_in={
                "project_id": project_id,
                "workflow_id": workflow_id,
                "workflow_stage_id": stage_id,
                "asset_id": asset_id,
                "status": status,
                "priority": settings.DEFAULT_TASK_PRIORITY,
            },
            commit=False,
        )
        await task_event_service.record(
            db,
            task=task_obj,
            event_type=TaskEventType.TASK_CREATED,
            user_id=user_id,
            details=details,
            to_status=status,
            to_stage_id=stage_id,
        )
        await db.commit()
        await db.refresh(task_obj)
        return task_obj

    async def create_tasks_for_data_source(
        self,
        db: AsyncSession,
        *,
        project_id: UUID,
        workflow_id: UUID,
        stage_id: UUID,
        data_source_id: UUID,
        workflow_assets_only: bool = False,
    ) -> int:
        """Create one task per eligible asset in a pool and return how many were created.

        Assets that already own a live task at the stage are skipped, so the
        call is safe to repeat. ``workflow_assets_only`` limits the sweep to
        assets that already have a task in ``workflow_id``.
        """
        stage = await workflow_stage.get(db, id=stage_id)
        if stage is None:
            raise NotFoundError(get_translation("errors.stage_not_found"))
        stage_type = WorkflowStageType(stage.stage_type)
        status = ready_status_for(stage_type)

        assets = await task_crud.get_assets_without_task(
            db,
            data_source_id=data_source_id,
            stage_id=stage_id,
            workflow_id=workflow_id if workflow_assets_only else None,
        )
        asset_ids = [asset_obj.id for asset_obj in assets]

        created = 0
        for asset_id in asset_ids:
            try:
                await self._create_task(
                    db,
                    project_id=project_id,
                    workflow_id=workflow_id,
                    stage_id=stage_id,
                    asset_id=asset_id,
                    status=status,
                )
                created += 1
            except SQLAlchemyError:
                logger.exception("Failed to create task for asset %s at stage %s", asset_id, stage_id)
                await db.rollback()

        if created:
            tasks_created_total.labels(stage_type.value).inc(created)
        logger.info(
            "Created %s task(s) at stage %s from data source %s", created, stage_id, data_source_id
        )
        return created

    async def create_task_for_asset(
        self,
        db: AsyncSession,
        *,
        stage: WorkflowStage,
        asset_id: UUID,
        project_id: UUID,
        status: Optional[TaskStatus] = None,
        user_id: Optional[UUID] = None,
        details: Optional[str] = None,
    ) -> Optional[Task]:
        """Create a task for a single asset unless it already has a live one at the stage."""
        existing = await task_crud.get_live_for_asset_at_stage(db, asset_id=asset_id, stage_id=stage.id)
        if existing is not None:
            logger.info("Asset %s already has live task %s at stage %s", asset_id, existing.id, stage.id)
            return None
        stage_type = WorkflowStageType(stage.stage_type)
        task_obj = await self._create_task(
            db,
            project_id=project_id,
            workflow_id=stage.workflow_id,
            stage_id=stage.id,
            asset_id=asset_id,
            status=status or ready_status_for(stage_type),
            user_id=user_id,
            details=details,
        )
        tasks_created_total.labels(stage_type.value).inc()
        return task_obj

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------
    async def _write_status(
        self,
        db: AsyncSession,
        *,
        task_obj: Task,
        target: TaskStatus,
        user_id: Optional[UUID],
        details: Optional[str] = None,
    ) -> Task:
        previous = TaskStatus(task_obj.status)
        now = utcnow()
        task_obj.status = target
        timestamp_field = STATUS_TIMESTAMP_FIELDS.get(target)
        if timestamp_field and getattr(task_obj, timestamp_field) is None:
            setattr(task_obj, timestamp_field, now)
        if target in WORKED_ON_STATUSES and user_id is not None:
            task_obj.last_worked_on_by_user_id = user_id
        task_obj.updated_at = now
        db.add(task_obj)

        await task_event_service.record(
            db,
            task=task_obj,
            event_type=TaskEventType.STATUS_CHANGED,
            user_id=user_id,
            details=details or f"Status changed from {previous.value} to {target.value}",
            from_status=previous,
            to_status=target,
            from_stage_id=task_obj.workflow_stage_id,
        )
        await db.commit()
        await db.refresh(task_obj)
        task_status_transitions_total.labels(previous.value, target.value, "applied").inc()
        return task_obj

    async def apply_system_status(
        self,
        db: AsyncSession,
        task_obj: Task,
        target_status: TaskStatus,
        *,
        user_id: Optional[UUID] = None,
        details: Optional[str] = None,
    ) -> Task:
        """Set a status driven by workflow progression, without the user-facing rules."""
        if TaskStatus(task_obj.status) == target_status:
            return task_obj
        return await self._write_status(
            db, task_obj=task_obj, target=target_status, user_id=user_id, details=details
        )

    async def change_task_status(
        self,
        db: AsyncSession,
        *,
        task_id: UUID,
        target_status: TaskStatus,
        user_id: Optional[UUID],
        move_asset: bool = True,
    ) -> Task:
        """Validate and apply a status change, then hand the asset on when it applies.

        Requesting the current status is a no-op. A denied transition raises
        TaskStatusTransitionError naming both statuses.
        """
        task_obj = await self.get_task_or_404(db, task_id)
        current = TaskStatus(task_obj.status)
        target = TaskStatus(target_status)
        if current == target:
            return task_obj

        stage = await self.get_stage_for_task(db, task_obj)
        decision = task_status_validator.validate(current, target, stage.stage_type)
        if not decision.allowed:
            task_status_transitions_total.labels(current.value, target.value, "denied").inc()
            logger.info("Denied status change of task %s: %s", task_id, decision.reason)
            raise TaskStatusTransitionError(current.value, target.value, decision.reason)

        task_obj = await self._write_status(db, task_obj=task_obj, target=target, user_id=user_id)
        logger.info("Task %s moved from %s to %s by %s", task_id, current.value, target.value, user_id)

        if move_asset:
            result = await self.run_asset_movement(
                db, task_obj=task_obj, stage=stage, target_status=target, user_id=user_id
            )
            if result.error_message:
                logger.warning(
                    "Status of task %s changed but asset hand-off failed: %s", task_id, result.error_message
                )
            await db.refresh(task_obj)
        return task_obj

    async def run_asset_movement(
        self,
        db: AsyncSession,
        *,
        task_obj: Task,
        stage: WorkflowStage,
        target_status: TaskStatus,
        user_id: Optional[UUID],
    ) -> "AssetMovementResult":
        """Run the movement coordinator and archive the task once its asset moved on."""
        from app.services.asset_movement_service import asset_movement_coordinator

        task_id = task_obj.id
        result = await asset_movement_coordinator.handle_status_change(
            db, task_obj=task_obj, stage=stage, target_status=target_status, user_id=user_id
        )
        if result.should_archive_task and result.asset_moved:
            try:
                task_obj = await self.get_task_or_404(db, task_id)
                await self.apply_system_status(
                    db,
                    task_obj,
                    TaskStatus.ARCHIVED,
                    user_id=user_id,
                    details="Archived after hand-off to the next stage",
                )
            except SQLAlchemyError as exc:
                logger.exception("Failed to archive task %s after hand-off", task_id)
                await db.rollback()
                result.error_message = f"Failed to archive task: {exc}"
        return result

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------
    async def _check_assignment(
        self,
        db: AsyncSession,
        *,
        task_obj: Task,
        target_user_id: Optional[UUID],
        acting_user_id: UUID,
    ) -> None:
        status = TaskStatus(task_obj.status)
        if status in UNASSIGNABLE_STATUSES:
            raise TaskAssignmentError(status.value)

        role = await membership_service.get_role(db, project_id=task_obj.project_id, user_id=acting_user_id)
        if role == ProjectRole.MANAGER:
            pass
        elif role == ProjectRole.REVIEWER:
            if target_user_id is not None and target_user_id != acting_user_id:
                raise ForbiddenError(get_translation("errors.reviewer_self_assign_only"))
        else:
            raise ForbiddenError(get_translation("errors.assign_forbidden"))

        if target_user_id is not None and not await membership_service.is_member(
            db, project_id=task_obj.project_id, user_id=target_user_id
        ):
            raise ValidationError(get_translation("errors.not_project_member"))

    async def _write_assignment(
        self,
        db: AsyncSession,
        *,
        task_obj: Task,
        target_user_id: Optional[UUID],
        acting_user_id: UUID,
    ) -> None:
        previous = _ensure_uuid(task_obj.assigned_to_user_id)
        task_obj.assigned_to_user_id = target_user_id
        task_obj.updated_at = utcnow()
        db.add(task_obj)
        if target_user_id is None:
            event_type = TaskEventType.TASK_UNASSIGNED
            details = f"Task unassigned from {previous}" if previous else "Task unassigned"
        else:
            event_type = TaskEventType.TASK_ASSIGNED
            details = f"Task assigned to {target_user_id}"
        await task_event_service.record(
            db,
            task=task_obj,
            event_type=event_type,
            user_id=acting_user_id,
            details=details,
        )

    async def assign_task(
        self,
        db: AsyncSession,
        *,
        task_id: UUID,
        target_user_id: Optional[UUID],
        acting_user_id: UUID,
    ) -> Task:
        """Assign or unassign a task according to the acting user's project role."""
        task_obj = await self.get_task_or_404(db, task_id)
        target_user_id = _ensure_uuid(target_user_id)
        await self._check_assignment(
            db, task_obj=task_obj, target_user_id=target_user_id, acting_user_id=acting_user_id
        )
        if _ensure_uuid(task_obj.assigned_to_user_id) == target_user_id:
            return task_obj

        await self._write_assignment(
            db, task_obj=task_obj, target_user_id=target_user_id, acting_user_id=acting_user_id
        )
        await db.commit()
        await db.refresh(task_obj)
        logger.info("Task %s assigned to %s by %s", task_id, target_user_id, acting_user_id)
        return task_obj

    async def update_task(
        self,
        db: AsyncSession,
        *,
        task_id: UUID,
        task_in: TaskUpdate,
        acting_user_id: UUID,
    ) -> Task:
        """Field-level edit, including reassignment by email and timestamp corrections."""
        task_obj = await self.get_task_or_404(db, task_id)
        fields = task_in.model_fields_set

        assignment_requested = False
        new_assignee: Optional[UUID] = None
        if "assigned_to_email" in fields:
            assignment_requested = True
            email = (task_in.assigned_to_email or "").strip()
            if email:
                target_user = await user_crud.get_by_email(db, email=email)
                if target_user is None:
                    raise NotFoundError(get_translation("errors.user_not_found"))
                new_assignee = target_user.id
        elif "assigned_to_user_id" in fields:
            assignment_requested = True
            new_assignee = _ensure_uuid(task_in.assigned_to_user_id)

        if assignment_requested and new_assignee != _ensure_uuid(task_obj.assigned_to_user_id):
            await self._check_assignment(
                db, task_obj=task_obj, target_user_id=new_assignee, acting_user_id=acting_user_id
            )
            await self._write_assignment(
                db, task_obj=task_obj, target_user_id=new_assignee, acting_user_id=acting_user_id
            )

        for field in ("due_date", "meta_data"):
            if field in fields:
                setattr(task_obj, field, getattr(task_in, field))
        # priority is NOT NULL and timestamps are never cleared
        for field in ("priority",) + ADMIN_TIMESTAMP_FIELDS:
            value = getattr(task_in, field)
            if field in fields and value is not None:
                setattr(task_obj, field, value)
        task_obj.updated_at = utcnow()
        db.add(task_obj)
        await db.commit()
        await db.refresh(task_obj)
        return task_obj

    async def add_working_time(
        self,
        db: AsyncSession,
        *,
        task_id: UUID,
        delta_ms: int,
        user_id: Optional[UUID] = None,
    ) -> Task:
        """Add to the working time accumulator, which never decreases."""
        if delta_ms < 0:
            raise ValidationError("Working time can only increase")
        task_obj = await self.get_task_or_404(db, task_id)
        task_obj.working_time_ms = (task_obj.working_time_ms or 0) + delta_ms
        task_obj.updated_at = utcnow()
        db.add(task_obj)
        await db.commit()
        await db.refresh(task_obj)
        return task_obj

    async def move_task_to_stage(
        self,
        db: AsyncSession,
        *,
        task_id: UUID,
        stage_id: UUID,
        user_id: UUID,
    ) -> Task:
        """Move a task to another stage of its workflow and record a STAGE_CHANGED event."""
        task_obj = await self.get_task_or_404(db, task_id)
        stage = await workflow_stage.get(db, id=stage_id)
        if stage is None:
            raise NotFoundError(get_translation("errors.stage_not_found"))
        if stage.workflow_id != task_obj.workflow_id:
            raise ValidationError("Target stage belongs to a different workflow")

        previous_stage_id = task_obj.workflow_stage_id
        if previous_stage_id == stage.id:
            return task_obj
        task_obj.workflow_stage_id = stage.id
        task_obj.updated_at = utcnow()
        db.add(task_obj)
        await task_event_service.record(
            db,
            task=task_obj,
            event_type=TaskEventType.STAGE_CHANGED,
            user_id=user_id,
            details=f"Task moved from stage {previous_stage_id} to stage {stage.id}",
            from_stage_id=previous_stage_id,
            to_stage_id=stage.id,
        )
        await db.commit()
        await db.refresh(task_obj)
        return task_obj


task_service = TaskService()
