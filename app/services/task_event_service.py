"""Task audit trail and veto analytics."""
from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.task import task as task_crud
from app.crud.task_event import CHANGES_REQUIRED_MARKER, task_event
from app.models.task import Task, TaskEvent, TaskEventType, TaskStatus


def changes_required_details(reason: Optional[str]) -> str:
    """Event details for a veto, recognised by the veto statistics."""
    if reason:
        return f"{CHANGES_REQUIRED_MARKER}: {reason}"
    return CHANGES_REQUIRED_MARKER


class TaskEventService:
    """Record and read task events."""

    async def record(
        self,
        db: AsyncSession,
        *,
        task: Task,
        event_type: TaskEventType,
        user_id: Optional[UUID] = None,
        details: Optional[str] = None,
        from_status: Optional[TaskStatus] = None,
        to_status: Optional[TaskStatus] = None,
        from_stage_id: Optional[UUID] = None,
        to_stage_id: Optional[UUID] = None,
        commit: bool = False,
    ) -> TaskEvent:
        return await task_event.create(
            db,
            obj_in={
                "task_id": task.id,
                "user_id": user_id,
                "event_type": event_type,
                "details": details,
                "from_status": from_status,
                "to_status": to_status,
                "from_workflow_stage_id": from_stage_id,
                "to_workflow_stage_id": to_stage_id or task.workflow_stage_id,
            },
            commit=commit,
        )

    async def get_events_for_task(self, db: AsyncSession, task_id: UUID) -> List[TaskEvent]:
        return await task_event.get_by_task(db, task_id=task_id)

    async def get_veto_stats(self, db: AsyncSession, project_id: UUID) -> Dict[str, Any]:
        """Vetoes against completed tasks for a project.

        ``quality_score`` is 100 minus the veto percentage, floored at 0.
        """
        vetoed = await task_event.count_vetoes(db, project_id=project_id)
        completed = await task_crud.count_completed(db, project_id=project_id)
        veto_rate = (vetoed / completed) if completed else 0.0
        quality_score = max(0.0, 100.0 - veto_rate * 100.0) if completed else 100.0
        per_user = [
            {"user_id": user_id, "vetoes_issued": count}
            for user_id, count in (await task_event.count_vetoes_by_user(db, project_id=project_id)).items()
        ]
        return {
            "project_id": project_id,
            "vetoed_count": vetoed,
            "completed_count": completed,
            "veto_rate": round(veto_rate, 4),
            "quality_score": round(quality_score, 2),
            "per_user": per_user,
        }


task_event_service = TaskEventService()
