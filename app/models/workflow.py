"""Workflow stage graph models."""
from enum import Enum
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base
from app.db.types import GUID
from app.utils.timeutils import utcnow


class WorkflowStageType(str, Enum):
    """Kind of work performed in a stage."""

    ANNOTATION = "ANNOTATION"
    REVISION = "REVISION"
    COMPLETION = "COMPLETION"


class Workflow(Base):
    """A project's annotation workflow."""

    __tablename__ = "workflows"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4, index=True)
    project_id = Column(GUID(), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    label_scheme_id = Column(GUID(), nullable=True)
    created_by = Column(GUID(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )

    stages = relationship(
        "WorkflowStage",
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="WorkflowStage.stage_order",
        lazy="selectin",
    )


class WorkflowStage(Base):
    """Ordered node of a workflow graph bound to its input and target pools."""

    __tablename__ = "workflow_stages"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4, index=True)
    workflow_id = Column(GUID(), ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    stage_order = Column(Integer, nullable=False, default=0)
    stage_type = Column(SQLEnum(WorkflowStageType), nullable=False)
    is_initial_stage = Column(Boolean, nullable=False, default=False)
    is_final_stage = Column(Boolean, nullable=False, default=False)
    input_data_source_id = Column(GUID(), ForeignKey("data_sources.id", ondelete="SET NULL"), nullable=True, index=True)
    target_data_source_id = Column(GUID(), ForeignKey("data_sources.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )

    workflow = relationship("Workflow", back_populates="stages")


class WorkflowStageConnection(Base):
    """Directed edge between two stages of the same workflow."""

    __tablename__ = "workflow_stage_connections"
    __table_args__ = (UniqueConstraint("from_stage_id", "to_stage_id", name="uq_stage_connection"),)

    id = Column(GUID(), primary_key=True, default=uuid.uuid4, index=True)
    from_stage_id = Column(GUID(), ForeignKey("workflow_stages.id", ondelete="CASCADE"), nullable=False, index=True)
    to_stage_id = Column(GUID(), ForeignKey("workflow_stages.id", ondelete="CASCADE"), nullable=False, index=True)
    condition = Column(Text, nullable=True)  # Advisory only, never evaluated
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


class WorkflowStageAssignment(Base):
    """Project member assigned to work a stage."""

    __tablename__ = "workflow_stage_assignments"
    __table_args__ = (UniqueConstraint("workflow_stage_id", "project_member_id", name="uq_stage_assignment"),)

    id = Column(GUID(), primary_key=True, default=uuid.uuid4, index=True)
    workflow_stage_id = Column(GUID(), ForeignKey("workflow_stages.id", ondelete="CASCADE"), nullable=False, index=True)
    project_member_id = Column(GUID(), ForeignKey("project_members.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
