"""Workflow and stage graph schemas."""
from typing import List, Optional
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, Field, model_validator

from app.models.workflow import WorkflowStageType


class WorkflowStageCreate(BaseModel):
    """Stage creation schema."""

    name: str
    description: Optional[str] = None
    stage_type: WorkflowStageType
    stage_order: Optional[int] = None
    is_initial_stage: bool = False
    is_final_stage: bool = False
    input_data_source_id: Optional[UUID] = None
    target_data_source_id: Optional[UUID] = None
    assigned_project_member_ids: List[UUID] = []


class WorkflowStageUpdate(BaseModel):
    """Stage update schema."""

    name: Optional[str] = None
    description: Optional[str] = None
    stage_type: Optional[WorkflowStageType] = None
    stage_order: Optional[int] = None
    is_initial_stage: Optional[bool] = None
    is_final_stage: Optional[bool] = None
    input_data_source_id: Optional[UUID] = None
    target_data_source_id: Optional[UUID] = None


class WorkflowStageResponse(BaseModel):
    """Stage response schema."""

    id: UUID
    workflow_id: UUID
    name: str
    description: Optional[str] = None
    stage_order: int
    stage_type: WorkflowStageType
    is_initial_stage: bool
    is_final_stage: bool
    input_data_source_id: Optional[UUID] = None
    target_data_source_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class StageConnectionSpec(BaseModel):
    """Connection between two custom stages referenced by request position."""

    from_index: int = Field(ge=0)
    to_index: int = Field(ge=0)
    condition: Optional[str] = None


class WorkflowCreate(BaseModel):
    """Workflow creation schema."""

    name: str
    description: Optional[str] = None
    label_scheme_id: Optional[UUID] = None
    create_default_stages: bool = True
    include_review_stage: bool = True
    stages: Optional[List[WorkflowStageCreate]] = None
    connections: Optional[List[StageConnectionSpec]] = None

    @model_validator(mode="after")
    def check_connections_reference_stages(self):
        if self.connections and not self.stages:
            raise ValueError("connections require custom stages")
        if self.connections:
            size = len(self.stages)
            for spec in self.connections:
                if spec.from_index >= size or spec.to_index >= size:
                    raise ValueError("connection references an unknown stage index")
        return self


class WorkflowUpdate(BaseModel):
    """Workflow update schema."""

    name: Optional[str] = None
    description: Optional[str] = None
    label_scheme_id: Optional[UUID] = None


class WorkflowResponse(BaseModel):
    """Workflow response schema."""

    id: UUID
    project_id: UUID
    name: str
    description: Optional[str] = None
    label_scheme_id: Optional[UUID] = None
    stages: List[WorkflowStageResponse] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class WorkflowStageConnectionCreate(BaseModel):
    """Connection creation schema."""

    from_stage_id: UUID
    to_stage_id: UUID
    condition: Optional[str] = None


class WorkflowStageConnectionResponse(BaseModel):
    """Connection response schema."""

    id: UUID
    from_stage_id: UUID
    to_stage_id: UUID
    condition: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class WorkflowStageReorder(BaseModel):
    """New stage order given as the full list of stage ids."""

    stage_ids: List[UUID]
