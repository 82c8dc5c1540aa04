"""Tests for the completion and veto pipelines."""
import pytest
import pytest_asyncio

from app.crud.task import task as task_crud
from app.models.task import TaskEventType, TaskStatus
from app.services.task_event_service import task_event_service
from app.services.task_service import task_service
from app.services.task_workflow_service import task_workflow_service
from app.services.workflow_stage_service import workflow_stage_service


@pytest_asyncio.fixture
async def started_task(db_session, default_workflow, annotator):
    """A seeded annotation task the annotator is working on."""
    tasks, _ = await task_service.list_tasks_for_project(db_session, project_id=default_workflow.project_id)
    return await task_service.change_task_status(
        db_session, task_id=tasks[0].id, target_status=TaskStatus.IN_PROGRESS, user_id=annotator.id
    )


async def _review_task_in_progress(db_session, default_workflow, started_task, annotator, reviewer):
    review = default_workflow.stages[1]
    result = await task_workflow_service.complete_task(db_session, task_id=started_task.id, user_id=annotator.id)
    assert result.success
    review_task = await task_crud.get_live_for_asset_at_stage(
        db_session, asset_id=started_task.asset_id, stage_id=review.id
    )
    return await task_service.change_task_status(
        db_session, task_id=review_task.id, target_status=TaskStatus.IN_PROGRESS, user_id=reviewer.id
    )


@pytest.mark.asyncio
async def test_complete_annotation_task(db_session, default_workflow, started_task, annotator):
    review = default_workflow.stages[1]
    result = await task_workflow_service.complete_task(db_session, task_id=started_task.id, user_id=annotator.id)

    assert result.success
    assert result.status_changed
    assert result.moved_asset
    assert result.tasks_created == 1
    assert result.target_stage_id == review.id
    assert result.error_message is None
    assert TaskStatus(result.task.status) == TaskStatus.ARCHIVED


@pytest.mark.asyncio
async def test_viewer_cannot_complete(db_session, started_task, viewer):
    result = await task_workflow_service.complete_task(db_session, task_id=started_task.id, user_id=viewer.id)
    assert not result.success
    assert not result.status_changed
    assert result.error_message

    unchanged = await task_service.get_task(db_session, started_task.id)
    assert TaskStatus(unchanged.status) == TaskStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_complete_requires_in_progress(db_session, default_workflow, annotator):
    tasks, _ = await task_service.list_tasks_for_project(db_session, project_id=default_workflow.project_id)
    result = await task_workflow_service.complete_task(db_session, task_id=tasks[0].id, user_id=annotator.id)
    assert not result.success
    assert "READY_FOR_ANNOTATION" in result.error_message


@pytest.mark.asyncio
async def test_complete_respects_assignment(db_session, started_task, manager, annotator, reviewer):
    await task_service.assign_task(
        db_session, task_id=started_task.id, target_user_id=annotator.id, acting_user_id=manager.id
    )
    result = await task_workflow_service.complete_task(db_session, task_id=started_task.id, user_id=reviewer.id)
    assert not result.success
    assert result.error_message == "Task is assigned to another user"

    # Managers may complete tasks assigned to anyone
    result = await task_workflow_service.complete_task(db_session, task_id=started_task.id, user_id=manager.id)
    assert result.success


@pytest.mark.asyncio
async def test_failed_hand_off_keeps_completion(db_session, started_task, annotator, monkeypatch):
    task_id = started_task.id
    user_id = annotator.id

    async def broken_next_stage(db, stage):
        raise RuntimeError("stage graph unavailable")

    monkeypatch.setattr(workflow_stage_service, "get_next_stage", broken_next_stage)
    result = await task_workflow_service.complete_task(db_session, task_id=task_id, user_id=user_id)

    assert result.success
    assert result.status_changed
    assert not result.moved_asset
    assert result.error_message == "stage graph unavailable"
    assert TaskStatus(result.task.status) == TaskStatus.COMPLETED


@pytest.mark.asyncio
async def test_veto_returns_asset_to_annotation(db_session, default_workflow, started_task, annotator, reviewer):
    annotation = default_workflow.stages[0]
    asset_id = started_task.asset_id
    review_task = await _review_task_in_progress(db_session, default_workflow, started_task, annotator, reviewer)
    review_task_id = review_task.id

    result = await task_workflow_service.veto_task(
        db_session, task_id=review_task_id, user_id=reviewer.id, reason="Missed two pedestrians"
    )
    assert result.success
    assert result.moved_asset
    assert result.target_stage_id == annotation.id
    assert result.tasks_created == 1
    assert TaskStatus(result.task.status) == TaskStatus.CHANGES_REQUIRED
    assert result.task.changes_required_at is not None

    rework = await task_crud.get_live_for_asset_at_stage(db_session, asset_id=asset_id, stage_id=annotation.id)
    assert TaskStatus(rework.status) == TaskStatus.READY_FOR_ANNOTATION

    events = await task_event_service.get_events_for_task(db_session, review_task_id)
    veto_events = [
        e
        for e in events
        if TaskEventType(e.event_type) == TaskEventType.STATUS_CHANGED
        and TaskStatus(e.to_status) == TaskStatus.CHANGES_REQUIRED
    ]
    assert len(veto_events) == 1
    assert veto_events[0].details == "CHANGES_REQUIRED: Missed two pedestrians"


@pytest.mark.asyncio
async def test_recompletion_resets_vetoed_review_task(
    db_session, default_workflow, started_task, annotator, reviewer
):
    annotation, review, _ = default_workflow.stages
    asset_id = started_task.asset_id
    review_task = await _review_task_in_progress(db_session, default_workflow, started_task, annotator, reviewer)
    review_task_id = review_task.id
    await task_workflow_service.veto_task(db_session, task_id=review_task_id, user_id=reviewer.id)

    rework = await task_crud.get_live_for_asset_at_stage(db_session, asset_id=asset_id, stage_id=annotation.id)
    await task_service.change_task_status(
        db_session, task_id=rework.id, target_status=TaskStatus.IN_PROGRESS, user_id=annotator.id
    )
    result = await task_workflow_service.complete_task(db_session, task_id=rework.id, user_id=annotator.id)
    assert result.success
    assert result.tasks_created == 1

    live_review = [
        task_obj
        for task_obj in await task_crud.get_by_asset(db_session, asset_id=asset_id)
        if task_obj.workflow_stage_id == review.id and TaskStatus(task_obj.status) != TaskStatus.ARCHIVED
    ]
    assert [task_obj.id for task_obj in live_review] == [review_task_id]
    assert TaskStatus(live_review[0].status) == TaskStatus.READY_FOR_REVIEW


@pytest.mark.asyncio
async def test_veto_preconditions(db_session, default_workflow, started_task, annotator, reviewer):
    started_id = started_task.id
    result = await task_workflow_service.veto_task(db_session, task_id=started_id, user_id=reviewer.id)
    assert not result.success
    assert result.error_message == "Annotation tasks cannot be vetoed"

    review_task = await _review_task_in_progress(db_session, default_workflow, started_task, annotator, reviewer)
    review_task_id = review_task.id

    result = await task_workflow_service.veto_task(db_session, task_id=review_task_id, user_id=annotator.id)
    assert not result.success
    assert result.error_message

    await task_workflow_service.veto_task(db_session, task_id=review_task_id, user_id=reviewer.id)
    result = await task_workflow_service.veto_task(db_session, task_id=review_task_id, user_id=reviewer.id)
    assert not result.success
    assert result.error_message == "Task has already been vetoed"


@pytest.mark.asyncio
async def test_veto_requires_in_progress(db_session, default_workflow, started_task, annotator, reviewer):
    review = default_workflow.stages[1]
    asset_id = started_task.asset_id
    await task_workflow_service.complete_task(db_session, task_id=started_task.id, user_id=annotator.id)
    review_task = await task_crud.get_live_for_asset_at_stage(db_session, asset_id=asset_id, stage_id=review.id)

    result = await task_workflow_service.veto_task(db_session, task_id=review_task.id, user_id=reviewer.id)
    assert not result.success
    assert "READY_FOR_REVIEW" in result.error_message


@pytest.mark.asyncio
async def test_veto_stats(db_session, project, default_workflow, started_task, annotator, reviewer):
    project_id = project.id
    reviewer_id = reviewer.id
    review_task = await _review_task_in_progress(db_session, default_workflow, started_task, annotator, reviewer)
    await task_workflow_service.veto_task(db_session, task_id=review_task.id, user_id=reviewer_id, reason="Blurry")

    stats = await task_event_service.get_veto_stats(db_session, project_id)
    assert stats["vetoed_count"] == 1
    assert stats["completed_count"] == 1
    assert stats["veto_rate"] == 1.0
    assert stats["quality_score"] == 0.0
    assert stats["per_user"] == [{"user_id": reviewer_id, "vetoes_issued": 1}]


@pytest.mark.asyncio
async def test_veto_stats_for_quiet_project(db_session, project):
    stats = await task_event_service.get_veto_stats(db_session, project.id)
    assert stats["vetoed_count"] == 0
    assert stats["veto_rate"] == 0.0
    assert stats["quality_score"] == 100.0
