"""Data source schemas."""
from typing import List, Optional
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel

from app.models.data_source import DataSourceStatus, DataSourceType


class DataSourceResponse(BaseModel):
    """Data source response schema."""

    id: UUID
    project_id: UUID
    name: str
    description: Optional[str] = None
    source_type: DataSourceType
    status: DataSourceStatus
    is_default: bool
    created_at: datetime

    class Config:
        from_attributes = True


class DataSourceStageUsage(BaseModel):
    """A stage that reads from or writes to a data source."""

    stage_id: UUID
    stage_name: str
    stage_type: str
    workflow_id: UUID
    workflow_name: str
    usage: str  # input or target


class DataSourceConflictResponse(BaseModel):
    """Stages that already claim a data source."""

    data_source_id: UUID
    has_conflicts: bool
    conflicts: List[DataSourceStageUsage] = []
