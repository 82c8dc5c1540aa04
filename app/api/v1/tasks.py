"""Task API endpoints."""
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from app.config import settings
from app.database import get_db
from app.dependencies import ensure_project_access, require_permission
from app.models.project import ProjectRole
from app.models.task import Task, TaskStatus
from app.models.user import User
from app.core.security import Permission
from app.schemas.common import PaginatedResponse
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
from app.services.task_event_service import task_event_service
from app.services.task_service import task_service
from app.services.task_workflow_service import PipelineResult, task_workflow_service

router = APIRouter()

WORKING_ROLES = (ProjectRole.ANNOTATOR, ProjectRole.REVIEWER, ProjectRole.MANAGER)
MANAGER_ONLY = (ProjectRole.MANAGER,)
MANAGER_TARGETS = frozenset({TaskStatus.READY_FOR_ANNOTATION, TaskStatus.ARCHIVED})


async def _task_with_access(
    db: AsyncSession, task_id: UUID, user: User, roles=None
) -> Task:
    task_obj = await task_service.get_task_or_404(db, task_id)
    await ensure_project_access(db, project_id=task_obj.project_id, user=user, roles=roles)
    return task_obj


def _pipeline_response(result: PipelineResult, response: Response) -> PipelineResultResponse:
    if not result.success:
        response.status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    return PipelineResultResponse.model_validate(result)


@router.get("/projects/{project_id}/tasks", response_model=PaginatedResponse[TaskResponse])
async def list_project_tasks(
    project_id: UUID,
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    workflow_stage_id: Optional[UUID] = None,
    assigned_to_user_id: Optional[UUID] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.TASK_VIEW)),
):
    """List tasks of a project with optional filters."""
    await ensure_project_access(db, project_id=project_id, user=current_user)
    items, total = await task_service.list_tasks_for_project(
        db,
        project_id=project_id,
        status=status_filter,
        workflow_stage_id=workflow_stage_id,
        assigned_to_user_id=assigned_to_user_id,
        skip=skip,
        limit=limit,
    )
    return PaginatedResponse[TaskResponse](
        total=total,
        skip=skip,
        limit=min(limit, settings.MAX_PAGE_SIZE),
        items=[TaskResponse.model_validate(item) for item in items],
    )


@router.get("/projects/{project_id}/veto-stats", response_model=VetoStatsResponse)
async def get_veto_stats(
    project_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.TASK_VIEW)),
):
    """Veto rate and quality score of a project."""
    await ensure_project_access(db, project_id=project_id, user=current_user)
    stats = await task_event_service.get_veto_stats(db, project_id)
    return VetoStatsResponse(**stats)


@router.get("/tasks/mine", response_model=PaginatedResponse[TaskResponse])
async def list_my_tasks(
    project_id: Optional[UUID] = None,
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.TASK_VIEW)),
):
    """Tasks assigned to the current user."""
    items, total = await task_service.list_tasks_for_user(
        db,
        user_id=current_user.id,
        project_id=project_id,
        status=status_filter,
        skip=skip,
        limit=limit,
    )
    return PaginatedResponse[TaskResponse](
        total=total,
        skip=skip,
        limit=min(limit, settings.MAX_PAGE_SIZE),
        items=[TaskResponse.model_validate(item) for item in items],
    )


@router.get("/tasks/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.TASK_VIEW)),
):
    """Get a task."""
    return await _task_with_access(db, task_id, current_user)


@router.patch("/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: UUID,
    task_in: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.TASK_WORK)),
):
    """Edit task fields; assignment changes follow the assignment policy."""
    roles = MANAGER_ONLY if task_in.touches_timestamps() else WORKING_ROLES
    await _task_with_access(db, task_id, current_user, roles=roles)
    return await task_service.update_task(
        db, task_id=task_id, task_in=task_in, acting_user_id=current_user.id
    )


@router.post("/tasks/{task_id}/status", response_model=TaskResponse)
async def change_task_status(
    task_id: UUID,
    status_in: TaskStatusChange,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.TASK_WORK)),
):
    """Move a task to another status within the transition table.

    Reopening and archiving are manager actions.
    """
    roles = MANAGER_ONLY if status_in.status in MANAGER_TARGETS else WORKING_ROLES
    await _task_with_access(db, task_id, current_user, roles=roles)
    return await task_service.change_task_status(
        db,
        task_id=task_id,
        target_status=status_in.status,
        user_id=current_user.id,
    )


@router.post("/tasks/{task_id}/assign", response_model=TaskResponse)
async def assign_task(
    task_id: UUID,
    assign_in: TaskAssign,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.TASK_WORK)),
):
    """Assign a task to a project member, or unassign it with a null user."""
    await _task_with_access(db, task_id, current_user)
    return await task_service.assign_task(
        db, task_id=task_id, target_user_id=assign_in.user_id, acting_user_id=current_user.id
    )


@router.post("/tasks/{task_id}/working-time", response_model=TaskResponse)
async def add_working_time(
    task_id: UUID,
    time_in: TaskWorkingTime,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.TASK_WORK)),
):
    """Add to the time spent on a task."""
    await _task_with_access(db, task_id, current_user, roles=WORKING_ROLES)
    return await task_service.add_working_time(
        db, task_id=task_id, delta_ms=time_in.delta_ms, user_id=current_user.id
    )


@router.post("/tasks/{task_id}/move", response_model=TaskResponse)
async def move_task(
    task_id: UUID,
    move_in: TaskMove,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.TASK_WORK)),
):
    """Move a task to another stage of its workflow."""
    await _task_with_access(db, task_id, current_user, roles=(ProjectRole.MANAGER,))
    return await task_service.move_task_to_stage(
        db, task_id=task_id, stage_id=move_in.stage_id, user_id=current_user.id
    )


@router.post("/tasks/{task_id}/complete", response_model=PipelineResultResponse)
async def complete_task(
    task_id: UUID,
    response: Response,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.TASK_WORK)),
):
    """Complete a task and hand its asset to the next stage."""
    await _task_with_access(db, task_id, current_user)
    result = await task_workflow_service.complete_task(db, task_id=task_id, user_id=current_user.id)
    return _pipeline_response(result, response)


@router.post("/tasks/{task_id}/veto", response_model=PipelineResultResponse)
async def veto_task(
    task_id: UUID,
    veto_in: TaskVeto,
    response: Response,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.TASK_WORK)),
):
    """Reject a task and send its asset back to annotation."""
    await _task_with_access(db, task_id, current_user)
    result = await task_workflow_service.veto_task(
        db, task_id=task_id, user_id=current_user.id, reason=veto_in.reason
    )
    return _pipeline_response(result, response)


@router.get("/tasks/{task_id}/events", response_model=List[TaskEventResponse])
async def list_task_events(
    task_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.TASK_VIEW)),
):
    """Audit trail of a task, oldest first."""
    await _task_with_access(db, task_id, current_user)
    return await task_event_service.get_events_for_task(db, task_id)
