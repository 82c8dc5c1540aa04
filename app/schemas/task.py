"""Task schemas."""
from typing import Any, Dict, List, Optional
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from app.models.task import TaskEventType, TaskStatus

ADMIN_TIMESTAMP_FIELDS = (
    "completed_at",
    "archived_at",
    "suspended_at",
    "deferred_at",
    "vetoed_at",
    "changes_required_at",
)


class TaskResponse(BaseModel):
    """Task response schema."""

    id: UUID
    project_id: UUID
    workflow_id: UUID
    workflow_stage_id: UUID
    asset_id: UUID
    status: TaskStatus
    priority: int
    assigned_to_user_id: Optional[UUID] = None
    last_worked_on_by_user_id: Optional[UUID] = None
    due_date: Optional[datetime] = None
    working_time_ms: int
    meta_data: Optional[Dict[str, Any]] = None
    completed_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None
    suspended_at: Optional[datetime] = None
    deferred_at: Optional[datetime] = None
    vetoed_at: Optional[datetime] = None
    changes_required_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TaskUpdate(BaseModel):
    """Field-level task update.

    ``assigned_to_email`` set to an empty string unassigns the task.
    Timestamp fields are administrative corrections reserved for managers;
    they can be rewritten but never cleared.
    """

    priority: Optional[int] = None
    due_date: Optional[datetime] = None
    meta_data: Optional[Dict[str, Any]] = None
    assigned_to_user_id: Optional[UUID] = None
    assigned_to_email: Optional[str] = None
    completed_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None
    suspended_at: Optional[datetime] = None
    deferred_at: Optional[datetime] = None
    vetoed_at: Optional[datetime] = None
    changes_required_at: Optional[datetime] = None

    @field_validator("priority", *ADMIN_TIMESTAMP_FIELDS)
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("must not be null")
        return value

    def touches_timestamps(self) -> bool:
        return bool(self.model_fields_set.intersection(ADMIN_TIMESTAMP_FIELDS))


class TaskStatusChange(BaseModel):
    """Requested status change; a completion always hands the asset on."""

    status: TaskStatus


class TaskAssign(BaseModel):
    """Assignment request; a null user unassigns."""

    user_id: Optional[UUID] = None


class TaskVeto(BaseModel):
    """Veto request."""

    reason: Optional[str] = None


class TaskWorkingTime(BaseModel):
    """Working time to add to a task."""

    delta_ms: int = Field(ge=0)


class TaskEventResponse(BaseModel):
    """Task event response schema."""

    id: UUID
    task_id: UUID
    user_id: Optional[UUID] = None
    event_type: TaskEventType
    details: Optional[str] = None
    from_status: Optional[TaskStatus] = None
    to_status: Optional[TaskStatus] = None
    from_workflow_stage_id: Optional[UUID] = None
    to_workflow_stage_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PipelineResultResponse(BaseModel):
    """Outcome of a completion or veto pipeline run."""

    success: bool
    status_changed: bool = False
    moved_asset: bool = False
    tasks_created: int = 0
    target_stage_id: Optional[UUID] = None
    error_message: Optional[str] = None
    task: Optional[TaskResponse] = None

    class Config:
        from_attributes = True


class VetoStatsResponse(BaseModel):
    """Veto statistics for a project."""

    project_id: UUID
    vetoed_count: int
    completed_count: int
    veto_rate: float
    quality_score: float
    per_user: List[Dict[str, Any]] = []


class TaskMove(BaseModel):
    """Target stage for a manual stage move."""

    stage_id: UUID
