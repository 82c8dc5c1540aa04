"""Workflow, stage and connection API endpoints."""
from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.dependencies import ensure_project_access, require_permission
from app.models.project import ProjectRole
from app.models.user import User
from app.models.workflow import Workflow
from app.core.security import Permission
from app.core.exceptions import NotFoundError
from app.crud.workflow import workflow_stage_connection
from app.schemas.workflow import (
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
from app.services.workflow_service import workflow_service
from app.services.workflow_stage_service import workflow_stage_service

router = APIRouter()

MANAGER_ONLY = (ProjectRole.MANAGER,)


async def _managed_workflow(db: AsyncSession, workflow_id: UUID, user: User) -> Workflow:
    wf = await workflow_service.get_workflow_or_404(db, workflow_id)
    await ensure_project_access(db, project_id=wf.project_id, user=user, roles=MANAGER_ONLY)
    return wf


@router.post(
    "/projects/{project_id}/workflows",
    response_model=WorkflowResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_workflow(
    project_id: UUID,
    workflow_in: WorkflowCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.WORKFLOW_MANAGE)),
):
    """Create a workflow with default or custom stages."""
    await ensure_project_access(db, project_id=project_id, user=current_user, roles=MANAGER_ONLY)
    return await workflow_service.create_workflow(
        db, project_id=project_id, workflow_in=workflow_in, acting_user_id=current_user.id
    )


@router.get("/projects/{project_id}/workflows", response_model=List[WorkflowResponse])
async def list_workflows(
    project_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.WORKFLOW_VIEW)),
):
    """List workflows of a project."""
    await ensure_project_access(db, project_id=project_id, user=current_user)
    return await workflow_service.list_workflows(db, project_id)


@router.get("/workflows/{workflow_id}", response_model=WorkflowResponse)
async def get_workflow(
    workflow_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.WORKFLOW_VIEW)),
):
    """Get a workflow with its stages."""
    wf = await workflow_service.get_workflow_or_404(db, workflow_id)
    await ensure_project_access(db, project_id=wf.project_id, user=current_user)
    return wf


@router.patch("/workflows/{workflow_id}", response_model=WorkflowResponse)
async def update_workflow(
    workflow_id: UUID,
    workflow_in: WorkflowUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.WORKFLOW_MANAGE)),
):
    """Rename or re-describe a workflow."""
    await _managed_workflow(db, workflow_id, current_user)
    return await workflow_service.update_workflow(db, workflow_id=workflow_id, workflow_in=workflow_in)


@router.delete("/workflows/{workflow_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workflow(
    workflow_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.WORKFLOW_MANAGE)),
):
    """Delete a workflow that has no tasks."""
    await _managed_workflow(db, workflow_id, current_user)
    await workflow_service.delete_workflow(db, workflow_id=workflow_id)


@router.get("/workflows/{workflow_id}/stages", response_model=List[WorkflowStageResponse])
async def list_stages(
    workflow_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.WORKFLOW_VIEW)),
):
    """List stages in order."""
    wf = await workflow_service.get_workflow_or_404(db, workflow_id)
    await ensure_project_access(db, project_id=wf.project_id, user=current_user)
    return await workflow_stage_service.list_stages(db, workflow_id)


@router.post(
    "/workflows/{workflow_id}/stages",
    response_model=WorkflowStageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_stage(
    workflow_id: UUID,
    stage_in: WorkflowStageCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.WORKFLOW_MANAGE)),
):
    """Append a stage to a workflow."""
    wf = await _managed_workflow(db, workflow_id, current_user)
    return await workflow_stage_service.create_stage(db, workflow=wf, stage_in=stage_in)


@router.post("/workflows/{workflow_id}/stages/reorder", response_model=List[WorkflowStageResponse])
async def reorder_stages(
    workflow_id: UUID,
    reorder_in: WorkflowStageReorder,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.WORKFLOW_MANAGE)),
):
    """Rewrite stage order from a full list of stage ids."""
    await _managed_workflow(db, workflow_id, current_user)
    return await workflow_stage_service.reorder_stages(
        db, workflow_id=workflow_id, stage_ids=reorder_in.stage_ids
    )


@router.patch("/stages/{stage_id}", response_model=WorkflowStageResponse)
async def update_stage(
    stage_id: UUID,
    stage_in: WorkflowStageUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.WORKFLOW_MANAGE)),
):
    """Update a stage, re-checking data source exclusivity."""
    stage = await workflow_stage_service.get_stage_or_404(db, stage_id)
    await _managed_workflow(db, stage.workflow_id, current_user)
    return await workflow_stage_service.update_stage(db, stage_id=stage_id, stage_in=stage_in)


@router.delete("/stages/{stage_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_stage(
    stage_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.WORKFLOW_MANAGE)),
):
    """Delete a stage without tasks."""
    stage = await workflow_stage_service.get_stage_or_404(db, stage_id)
    await _managed_workflow(db, stage.workflow_id, current_user)
    await workflow_stage_service.delete_stage(db, stage_id=stage_id)


@router.get(
    "/workflows/{workflow_id}/connections",
    response_model=List[WorkflowStageConnectionResponse],
)
async def list_connections(
    workflow_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.WORKFLOW_VIEW)),
):
    """List stage connections of a workflow."""
    wf = await workflow_service.get_workflow_or_404(db, workflow_id)
    await ensure_project_access(db, project_id=wf.project_id, user=current_user)
    return await workflow_stage_service.list_connections(db, workflow_id)


@router.post(
    "/workflows/{workflow_id}/connections",
    response_model=WorkflowStageConnectionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_connection(
    workflow_id: UUID,
    connection_in: WorkflowStageConnectionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.WORKFLOW_MANAGE)),
):
    """Connect two stages of the workflow."""
    await _managed_workflow(db, workflow_id, current_user)
    from_stage = await workflow_stage_service.get_stage_or_404(db, connection_in.from_stage_id)
    if from_stage.workflow_id != workflow_id:
        raise NotFoundError(f"Stage {connection_in.from_stage_id} is not part of workflow {workflow_id}")
    return await workflow_stage_service.create_connection(
        db,
        from_stage_id=connection_in.from_stage_id,
        to_stage_id=connection_in.to_stage_id,
        condition=connection_in.condition,
    )


@router.delete("/connections/{connection_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_connection(
    connection_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.WORKFLOW_MANAGE)),
):
    """Remove a stage connection."""
    connection = await workflow_stage_connection.get(db, id=connection_id)
    if connection is None:
        raise NotFoundError()
    stage = await workflow_stage_service.get_stage_or_404(db, connection.from_stage_id)
    await _managed_workflow(db, stage.workflow_id, current_user)
    await workflow_stage_service.delete_connection(db, connection_id=connection_id)
