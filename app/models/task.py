"""Task and task event models."""
from enum import Enum
import uuid

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, Text, Enum as SQLEnum
from sqlalchemy.sql import func

from app.database import Base
from app.db.types import GUID, JSONBType
from app.utils.timeutils import utcnow


class TaskStatus(str, Enum):
    """Lifecycle status of a task."""

    NOT_STARTED = "NOT_STARTED"
    READY_FOR_ANNOTATION = "READY_FOR_ANNOTATION"
    READY_FOR_REVIEW = "READY_FOR_REVIEW"
    READY_FOR_COMPLETION = "READY_FOR_COMPLETION"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    SUSPENDED = "SUSPENDED"
    DEFERRED = "DEFERRED"
    ARCHIVED = "ARCHIVED"
    VETOED = "VETOED"
    CHANGES_REQUIRED = "CHANGES_REQUIRED"


class TaskEventType(str, Enum):
    """Kinds of audit events recorded for a task."""

    TASK_CREATED = "TASK_CREATED"
    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_UNASSIGNED = "TASK_UNASSIGNED"
    STAGE_CHANGED = "STAGE_CHANGED"
    STATUS_CHANGED = "STATUS_CHANGED"
    TASK_VETOED = "TASK_VETOED"
    ASSET_MOVED = "ASSET_MOVED"


class Task(Base):
    """Unit of work binding one asset to a workflow stage."""

    __tablename__ = "tasks"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4, index=True)
    project_id = Column(GUID(), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    workflow_id = Column(GUID(), ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False, index=True)
    workflow_stage_id = Column(GUID(), ForeignKey("workflow_stages.id", ondelete="CASCADE"), nullable=False, index=True)
    asset_id = Column(GUID(), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(SQLEnum(TaskStatus), nullable=False, default=TaskStatus.NOT_STARTED, index=True)
    priority = Column(Integer, nullable=False, default=1)
    assigned_to_user_id = Column(GUID(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    last_worked_on_by_user_id = Column(GUID(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    working_time_ms = Column(BigInteger, nullable=False, default=0)
    meta_data = Column(JSONBType(), nullable=True)

    # Lifecycle timestamps, set on entering the matching status and never cleared
    completed_at = Column(DateTime(timezone=True), nullable=True)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    suspended_at = Column(DateTime(timezone=True), nullable=True)
    deferred_at = Column(DateTime(timezone=True), nullable=True)
    vetoed_at = Column(DateTime(timezone=True), nullable=True)
    changes_required_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )


class TaskEvent(Base):
    """Append-only audit record for a task."""

    __tablename__ = "task_events"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4, index=True)
    task_id = Column(GUID(), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(GUID(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    event_type = Column(SQLEnum(TaskEventType), nullable=False, index=True)
    details = Column(Text, nullable=True)
    from_status = Column(SQLEnum(TaskStatus), nullable=True)
    to_status = Column(SQLEnum(TaskStatus), nullable=True)
    from_workflow_stage_id = Column(GUID(), ForeignKey("workflow_stages.id", ondelete="SET NULL"), nullable=True)
    to_workflow_stage_id = Column(GUID(), ForeignKey("workflow_stages.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
