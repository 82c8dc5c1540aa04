"""Tests for task status changes, assignment and field edits."""
from uuid import uuid4

import pytest
import pytest_asyncio

from app.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    TaskAssignmentError,
    TaskStatusTransitionError,
    ValidationError,
)
from app.models.task import TaskEventType, TaskStatus
from app.schemas.task import TaskUpdate
from app.services.task_event_service import task_event_service
from app.services.task_service import task_service


@pytest_asyncio.fixture
async def annotation_task(db_session, default_workflow):
    """One of the seeded READY_FOR_ANNOTATION tasks."""
    tasks, _ = await task_service.list_tasks_for_project(db_session, project_id=default_workflow.project_id)
    return tasks[0]


async def _event_types(db_session, task_id):
    return [TaskEventType(event.event_type) for event in await task_event_service.get_events_for_task(db_session, task_id)]


@pytest.mark.asyncio
async def test_same_status_is_a_no_op(db_session, annotation_task, annotator):
    before = annotation_task.updated_at
    result = await task_service.change_task_status(
        db_session, task_id=annotation_task.id, target_status=TaskStatus.READY_FOR_ANNOTATION, user_id=annotator.id
    )
    assert TaskStatus(result.status) == TaskStatus.READY_FOR_ANNOTATION
    assert result.updated_at == before
    assert await _event_types(db_session, annotation_task.id) == [TaskEventType.TASK_CREATED]


@pytest.mark.asyncio
async def test_start_work_records_event_and_worker(db_session, annotation_task, annotator):
    result = await task_service.change_task_status(
        db_session, task_id=annotation_task.id, target_status=TaskStatus.IN_PROGRESS, user_id=annotator.id
    )
    assert TaskStatus(result.status) == TaskStatus.IN_PROGRESS
    assert result.last_worked_on_by_user_id == annotator.id

    events = await task_event_service.get_events_for_task(db_session, annotation_task.id)
    status_events = [e for e in events if TaskEventType(e.event_type) == TaskEventType.STATUS_CHANGED]
    assert len(status_events) == 1
    assert TaskStatus(status_events[0].from_status) == TaskStatus.READY_FOR_ANNOTATION
    assert TaskStatus(status_events[0].to_status) == TaskStatus.IN_PROGRESS
    assert status_events[0].user_id == annotator.id


@pytest.mark.asyncio
async def test_denied_transition_names_both_statuses(db_session, annotation_task, annotator):
    with pytest.raises(TaskStatusTransitionError) as exc_info:
        await task_service.change_task_status(
            db_session, task_id=annotation_task.id, target_status=TaskStatus.COMPLETED, user_id=annotator.id
        )
    assert exc_info.value.status_code == 422
    assert "READY_FOR_ANNOTATION" in exc_info.value.detail
    assert "COMPLETED" in exc_info.value.detail

    unchanged = await task_service.get_task(db_session, annotation_task.id)
    assert TaskStatus(unchanged.status) == TaskStatus.READY_FOR_ANNOTATION


@pytest.mark.asyncio
async def test_lifecycle_timestamps_are_kept(db_session, annotation_task, annotator):
    task_id = annotation_task.id
    await task_service.change_task_status(
        db_session, task_id=task_id, target_status=TaskStatus.IN_PROGRESS, user_id=annotator.id
    )
    suspended = await task_service.change_task_status(
        db_session, task_id=task_id, target_status=TaskStatus.SUSPENDED, user_id=annotator.id
    )
    suspended_at = suspended.suspended_at
    assert suspended_at is not None
    # Suspending does not count as working on the task
    assert suspended.last_worked_on_by_user_id == annotator.id

    resumed = await task_service.change_task_status(
        db_session, task_id=task_id, target_status=TaskStatus.IN_PROGRESS, user_id=annotator.id
    )
    assert resumed.suspended_at == suspended_at


@pytest.mark.asyncio
async def test_manager_assigns_member(db_session, annotation_task, manager, annotator):
    result = await task_service.assign_task(
        db_session, task_id=annotation_task.id, target_user_id=annotator.id, acting_user_id=manager.id
    )
    assert result.assigned_to_user_id == annotator.id
    assert TaskEventType.TASK_ASSIGNED in await _event_types(db_session, annotation_task.id)


@pytest.mark.asyncio
async def test_manager_cannot_assign_outsider(db_session, annotation_task, manager, outsider):
    with pytest.raises(ValidationError):
        await task_service.assign_task(
            db_session, task_id=annotation_task.id, target_user_id=outsider.id, acting_user_id=manager.id
        )


@pytest.mark.asyncio
async def test_reviewer_may_only_self_assign_or_unassign(db_session, annotation_task, reviewer, annotator):
    with pytest.raises(ForbiddenError):
        await task_service.assign_task(
            db_session, task_id=annotation_task.id, target_user_id=annotator.id, acting_user_id=reviewer.id
        )

    assigned = await task_service.assign_task(
        db_session, task_id=annotation_task.id, target_user_id=reviewer.id, acting_user_id=reviewer.id
    )
    assert assigned.assigned_to_user_id == reviewer.id

    unassigned = await task_service.assign_task(
        db_session, task_id=annotation_task.id, target_user_id=None, acting_user_id=reviewer.id
    )
    assert unassigned.assigned_to_user_id is None
    assert await _event_types(db_session, annotation_task.id) == [
        TaskEventType.TASK_CREATED,
        TaskEventType.TASK_ASSIGNED,
        TaskEventType.TASK_UNASSIGNED,
    ]


@pytest.mark.asyncio
async def test_annotator_and_viewer_cannot_assign(db_session, annotation_task, annotator, viewer):
    for actor in (annotator, viewer):
        with pytest.raises(ForbiddenError):
            await task_service.assign_task(
                db_session, task_id=annotation_task.id, target_user_id=actor.id, acting_user_id=actor.id
            )


@pytest.mark.asyncio
async def test_deferred_task_cannot_be_assigned(db_session, annotation_task, manager, annotator):
    await task_service.change_task_status(
        db_session, task_id=annotation_task.id, target_status=TaskStatus.DEFERRED, user_id=manager.id
    )
    with pytest.raises(TaskAssignmentError):
        await task_service.assign_task(
            db_session, task_id=annotation_task.id, target_user_id=annotator.id, acting_user_id=manager.id
        )


@pytest.mark.asyncio
async def test_update_task_assigns_by_email(db_session, annotation_task, manager, annotator):
    task_id = annotation_task.id
    updated = await task_service.update_task(
        db_session,
        task_id=task_id,
        task_in=TaskUpdate(assigned_to_email="Annotator@Example.com", priority=5),
        acting_user_id=manager.id,
    )
    assert updated.assigned_to_user_id == annotator.id
    assert updated.priority == 5

    cleared = await task_service.update_task(
        db_session, task_id=task_id, task_in=TaskUpdate(assigned_to_email=""), acting_user_id=manager.id
    )
    assert cleared.assigned_to_user_id is None

    with pytest.raises(NotFoundError):
        await task_service.update_task(
            db_session,
            task_id=task_id,
            task_in=TaskUpdate(assigned_to_email="nobody@example.com"),
            acting_user_id=manager.id,
        )


@pytest.mark.asyncio
async def test_update_task_leaves_unset_fields(db_session, annotation_task, manager):
    await task_service.update_task(
        db_session, task_id=annotation_task.id, task_in=TaskUpdate(priority=3), acting_user_id=manager.id
    )
    updated = await task_service.update_task(
        db_session,
        task_id=annotation_task.id,
        task_in=TaskUpdate(meta_data={"weather": "rain"}),
        acting_user_id=manager.id,
    )
    assert updated.priority == 3
    assert updated.meta_data == {"weather": "rain"}


@pytest.mark.asyncio
async def test_working_time_accumulates(db_session, annotation_task, annotator):
    await task_service.add_working_time(db_session, task_id=annotation_task.id, delta_ms=1500, user_id=annotator.id)
    result = await task_service.add_working_time(
        db_session, task_id=annotation_task.id, delta_ms=500, user_id=annotator.id
    )
    assert result.working_time_ms == 2000

    with pytest.raises(ValidationError):
        await task_service.add_working_time(
            db_session, task_id=annotation_task.id, delta_ms=-1, user_id=annotator.id
        )


@pytest.mark.asyncio
async def test_move_task_to_stage(db_session, default_workflow, annotation_task, manager):
    review = default_workflow.stages[1]
    moved = await task_service.move_task_to_stage(
        db_session, task_id=annotation_task.id, stage_id=review.id, user_id=manager.id
    )
    assert moved.workflow_stage_id == review.id

    events = await task_event_service.get_events_for_task(db_session, annotation_task.id)
    stage_event = [e for e in events if TaskEventType(e.event_type) == TaskEventType.STAGE_CHANGED][0]
    assert stage_event.from_workflow_stage_id == default_workflow.stages[0].id
    assert stage_event.to_workflow_stage_id == review.id


@pytest.mark.asyncio
async def test_missing_task_is_not_found(db_session, default_workflow, annotator):
    assert await task_service.get_task(db_session, uuid4()) is None
    with pytest.raises(NotFoundError):
        await task_service.change_task_status(
            db_session, task_id=uuid4(), target_status=TaskStatus.IN_PROGRESS, user_id=annotator.id
        )
