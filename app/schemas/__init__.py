"""Schema modules."""
from app.schemas.auth import TokenPayload, TokenResponse
from app.schemas.user import UserCreate, UserResponse, RoleResponse
from app.schemas.common import PaginatedResponse
from app.schemas.data_source import DataSourceResponse, DataSourceStageUsage, DataSourceConflictResponse
from app.schemas.workflow import (
    StageConnectionSpec,
    WorkflowCreate,
    WorkflowResponse,
    WorkflowStageConnectionCreate,
    WorkflowStageConnectionResponse,
    WorkflowStageCreate,
    WorkflowStageReorder,
    WorkflowStageResponse,
    WorkflowStageUpdate,
    WorkflowUpdate,
)
from app.schemas.task import (
    PipelineResultResponse,
    TaskAssign,
    TaskEventResponse,
    TaskMove,
    TaskResponse,
    TaskStatusChange,
    TaskUpdate,
    TaskVeto,
    TaskWorkingTime,
    VetoStatsResponse,
)
