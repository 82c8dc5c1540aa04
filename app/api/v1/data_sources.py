"""Data source API endpoints."""
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.dependencies import ensure_project_access, require_permission
from app.models.user import User
from app.core.security import Permission
from app.core.exceptions import NotFoundError
from app.crud.data_source import data_source as data_source_crud
from app.localization.helpers import get_translation
from app.schemas.data_source import DataSourceConflictResponse, DataSourceResponse
from app.services.workflow_stage_service import workflow_stage_service

router = APIRouter()


@router.get("/{project_id}/data-sources", response_model=List[DataSourceResponse])
async def list_data_sources(
    project_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.PROJECT_VIEW)),
):
    """List the asset pools of a project."""
    await ensure_project_access(db, project_id=project_id, user=current_user)
    return await data_source_crud.get_by_project(db, project_id=project_id)


@router.get("/{project_id}/data-sources/{data_source_id}/conflicts", response_model=DataSourceConflictResponse)
async def get_data_source_conflicts(
    project_id: UUID,
    data_source_id: UUID,
    exclude_workflow_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.WORKFLOW_VIEW)),
):
    """Stages that already read from or write to the data source."""
    await ensure_project_access(db, project_id=project_id, user=current_user)
    pool = await data_source_crud.get(db, id=data_source_id)
    if pool is None or pool.project_id != project_id:
        raise NotFoundError(get_translation("errors.data_source_not_found"))

    conflicts = await workflow_stage_service.get_data_source_conflicts(
        db,
        project_id=project_id,
        data_source_id=data_source_id,
        exclude_workflow_id=exclude_workflow_id,
    )
    return DataSourceConflictResponse(
        data_source_id=data_source_id,
        has_conflicts=bool(conflicts),
        conflicts=conflicts,
    )
