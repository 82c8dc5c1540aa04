"""Model modules."""
from app.models.user import User, Role
from app.models.project import Project, ProjectMember, ProjectRole
from app.models.data_source import (
    Asset,
    AssetStatus,
    DataSource,
    DataSourceStatus,
    DataSourceType,
)
from app.models.workflow import (
    Workflow,
    WorkflowStage,
    WorkflowStageAssignment,
    WorkflowStageConnection,
    WorkflowStageType,
)
from app.models.task import Task, TaskEvent, TaskEventType, TaskStatus

__all__ = [
    "User",
    "Role",
    "Project",
    "ProjectMember",
    "ProjectRole",
    "Asset",
    "AssetStatus",
    "DataSource",
    "DataSourceStatus",
    "DataSourceType",
    "Workflow",
    "WorkflowStage",
    "WorkflowStageAssignment",
    "WorkflowStageConnection",
    "WorkflowStageType",
    "Task",
    "TaskEvent",
    "TaskEventType",
    "TaskStatus",
]
