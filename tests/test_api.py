"""API tests for workflows, tasks and data sources."""
import pytest

from app.models.task import TaskStatus


async def _first_task_id(client, project_id, headers):
    response = await client.get(f"/api/v1/projects/{project_id}/tasks", headers=headers)
    assert response.status_code == 200
    return response.json()["items"][0]["id"]


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] in ("ok", "degraded")


@pytest.mark.asyncio
async def test_metrics_endpoint(client):
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "workflow_pipeline_runs_total" in response.text


@pytest.mark.asyncio
async def test_manager_creates_workflow(client, project, assets, manager, auth_headers_for):
    headers = auth_headers_for(manager)
    response = await client.post(
        f"/api/v1/projects/{project.id}/workflows",
        json={"name": "Street scenes"},
        headers=headers,
    )
    assert response.status_code == 201
    body = response.json()
    assert [stage["name"] for stage in body["stages"]] == ["Annotation", "Review", "Completion"]

    listed = await client.get(f"/api/v1/projects/{project.id}/workflows", headers=headers)
    assert listed.status_code == 200
    assert [wf["id"] for wf in listed.json()] == [body["id"]]

    tasks = await client.get(f"/api/v1/projects/{project.id}/tasks", headers=headers)
    assert tasks.json()["total"] == len(assets)


@pytest.mark.asyncio
async def test_annotator_cannot_create_workflow(client, project, annotator, auth_headers_for):
    response = await client.post(
        f"/api/v1/projects/{project.id}/workflows",
        json={"name": "Not mine"},
        headers=auth_headers_for(annotator),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_second_default_workflow_returns_conflict(client, project, default_workflow, manager, auth_headers_for):
    project_id = project.id
    headers = auth_headers_for(manager)
    response = await client.post(
        f"/api/v1/projects/{project_id}/workflows",
        json={"name": "Duplicate"},
        headers=headers,
    )
    assert response.status_code == 409
    assert "Annotation" in response.json()["detail"]


@pytest.mark.asyncio
async def test_outsider_is_forbidden(client, project, default_workflow, outsider, auth_headers_for):
    headers = auth_headers_for(outsider)
    response = await client.get(f"/api/v1/projects/{project.id}/tasks", headers=headers)
    assert response.status_code == 403

    response = await client.get(f"/api/v1/workflows/{default_workflow.id}", headers=headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_sees_any_project(client, project, default_workflow, test_admin, auth_headers_for):
    response = await client.get(f"/api/v1/projects/{project.id}/tasks", headers=auth_headers_for(test_admin))
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_status_change_and_denied_transition(client, project, default_workflow, annotator, auth_headers_for):
    headers = auth_headers_for(annotator)
    task_id = await _first_task_id(client, project.id, headers)

    denied = await client.post(
        f"/api/v1/tasks/{task_id}/status", json={"status": "COMPLETED"}, headers=headers
    )
    assert denied.status_code == 422
    assert "READY_FOR_ANNOTATION" in denied.json()["detail"]

    started = await client.post(
        f"/api/v1/tasks/{task_id}/status", json={"status": "IN_PROGRESS"}, headers=headers
    )
    assert started.status_code == 200
    assert started.json()["status"] == TaskStatus.IN_PROGRESS.value


@pytest.mark.asyncio
async def test_viewer_cannot_change_status(client, project, default_workflow, viewer, auth_headers_for):
    headers = auth_headers_for(viewer)
    task_id = await _first_task_id(client, project.id, headers)
    response = await client.post(
        f"/api/v1/tasks/{task_id}/status", json={"status": "IN_PROGRESS"}, headers=headers
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_complete_and_veto_over_http(
    client, project, default_workflow, annotator, reviewer, auth_headers_for
):
    review_stage_id = str(default_workflow.stages[1].id)
    annotator_headers = auth_headers_for(annotator)
    reviewer_headers = auth_headers_for(reviewer)
    task_id = await _first_task_id(client, project.id, annotator_headers)

    early = await client.post(f"/api/v1/tasks/{task_id}/complete", headers=annotator_headers)
    assert early.status_code == 422
    assert early.json()["success"] is False

    await client.post(f"/api/v1/tasks/{task_id}/status", json={"status": "IN_PROGRESS"}, headers=annotator_headers)
    done = await client.post(f"/api/v1/tasks/{task_id}/complete", headers=annotator_headers)
    assert done.status_code == 200
    body = done.json()
    assert body["success"] is True
    assert body["moved_asset"] is True
    assert body["target_stage_id"] == review_stage_id
    assert body["task"]["status"] == TaskStatus.ARCHIVED.value

    review_tasks = await client.get(
        f"/api/v1/projects/{project.id}/tasks",
        params={"workflow_stage_id": review_stage_id},
        headers=reviewer_headers,
    )
    review_task_id = review_tasks.json()["items"][0]["id"]
    await client.post(
        f"/api/v1/tasks/{review_task_id}/status", json={"status": "IN_PROGRESS"}, headers=reviewer_headers
    )
    vetoed = await client.post(
        f"/api/v1/tasks/{review_task_id}/veto", json={"reason": "Boxes too loose"}, headers=reviewer_headers
    )
    assert vetoed.status_code == 200
    assert vetoed.json()["task"]["status"] == TaskStatus.CHANGES_REQUIRED.value

    events = await client.get(f"/api/v1/tasks/{review_task_id}/events", headers=reviewer_headers)
    assert any(event["details"] == "CHANGES_REQUIRED: Boxes too loose" for event in events.json())

    stats = await client.get(f"/api/v1/projects/{project.id}/veto-stats", headers=reviewer_headers)
    assert stats.json()["vetoed_count"] == 1


@pytest.mark.asyncio
async def test_assign_and_list_mine(client, project, default_workflow, manager, annotator, auth_headers_for):
    manager_headers = auth_headers_for(manager)
    task_id = await _first_task_id(client, project.id, manager_headers)
    response = await client.post(
        f"/api/v1/tasks/{task_id}/assign", json={"user_id": str(annotator.id)}, headers=manager_headers
    )
    assert response.status_code == 200

    mine = await client.get("/api/v1/tasks/mine", headers=auth_headers_for(annotator))
    assert mine.status_code == 200
    assert [item["id"] for item in mine.json()["items"]] == [task_id]


@pytest.mark.asyncio
async def test_move_requires_manager(client, project, default_workflow, manager, annotator, auth_headers_for):
    completion_id = str(default_workflow.stages[2].id)
    task_id = await _first_task_id(client, project.id, auth_headers_for(manager))

    denied = await client.post(
        f"/api/v1/tasks/{task_id}/move", json={"stage_id": completion_id}, headers=auth_headers_for(annotator)
    )
    assert denied.status_code == 403

    moved = await client.post(
        f"/api/v1/tasks/{task_id}/move", json={"stage_id": completion_id}, headers=auth_headers_for(manager)
    )
    assert moved.status_code == 200
    assert moved.json()["workflow_stage_id"] == completion_id


@pytest.mark.asyncio
async def test_data_source_conflicts_endpoint(client, project, annotation_pool, default_workflow, reviewer, auth_headers_for):
    headers = auth_headers_for(reviewer)
    url = f"/api/v1/projects/{project.id}/data-sources/{annotation_pool.id}/conflicts"

    response = await client.get(url, headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["has_conflicts"] is True
    assert body["conflicts"][0]["stage_name"] == "Annotation"

    excluded = await client.get(url, params={"exclude_workflow_id": str(default_workflow.id)}, headers=headers)
    assert excluded.json()["has_conflicts"] is False

    pools = await client.get(f"/api/v1/projects/{project.id}/data-sources", headers=headers)
    assert len(pools.json()) == 3


@pytest.mark.asyncio
async def test_stage_connections_api(client, default_workflow, manager, auth_headers_for):
    annotation, _, completion = default_workflow.stages
    headers = auth_headers_for(manager)

    created = await client.post(
        f"/api/v1/workflows/{default_workflow.id}/connections",
        json={"from_stage_id": str(annotation.id), "to_stage_id": str(completion.id)},
        headers=headers,
    )
    assert created.status_code == 201
    listed = await client.get(f"/api/v1/workflows/{default_workflow.id}/connections", headers=headers)
    assert len(listed.json()) == 3

    removed = await client.delete(f"/api/v1/connections/{created.json()['id']}", headers=headers)
    assert removed.status_code == 204


@pytest.mark.asyncio
async def test_status_completion_always_hands_asset_on(
    client, project, default_workflow, annotator, auth_headers_for
):
    review_stage_id = str(default_workflow.stages[1].id)
    headers = auth_headers_for(annotator)
    task_id = await _first_task_id(client, project.id, headers)

    await client.post(f"/api/v1/tasks/{task_id}/status", json={"status": "IN_PROGRESS"}, headers=headers)
    done = await client.post(
        f"/api/v1/tasks/{task_id}/status",
        json={"status": "COMPLETED", "move_asset": False},
        headers=headers,
    )
    assert done.status_code == 200
    assert done.json()["status"] == TaskStatus.ARCHIVED.value

    review_tasks = await client.get(
        f"/api/v1/projects/{project.id}/tasks",
        params={"workflow_stage_id": review_stage_id},
        headers=headers,
    )
    assert review_tasks.json()["total"] == 1


@pytest.mark.asyncio
async def test_reopen_and_archive_through_status_are_manager_only(
    client, project, default_workflow, manager, annotator, auth_headers_for
):
    annotator_headers = auth_headers_for(annotator)
    task_id = await _first_task_id(client, project.id, annotator_headers)

    for target in ("ARCHIVED", "READY_FOR_ANNOTATION"):
        denied = await client.post(
            f"/api/v1/tasks/{task_id}/status", json={"status": target}, headers=annotator_headers
        )
        assert denied.status_code == 403

    # managers get past the role gate and hit the transition table instead
    not_completed = await client.post(
        f"/api/v1/tasks/{task_id}/status", json={"status": "ARCHIVED"}, headers=auth_headers_for(manager)
    )
    assert not_completed.status_code == 422

    task = await client.get(f"/api/v1/tasks/{task_id}", headers=annotator_headers)
    assert task.json()["status"] == TaskStatus.READY_FOR_ANNOTATION.value


@pytest.mark.asyncio
async def test_null_priority_is_rejected(client, project, default_workflow, manager, auth_headers_for):
    headers = auth_headers_for(manager)
    task_id = await _first_task_id(client, project.id, headers)

    response = await client.patch(f"/api/v1/tasks/{task_id}", json={"priority": None}, headers=headers)
    assert response.status_code == 422

    task = await client.get(f"/api/v1/tasks/{task_id}", headers=headers)
    assert task.json()["priority"] == 1

    raised = await client.patch(f"/api/v1/tasks/{task_id}", json={"priority": 5}, headers=headers)
    assert raised.status_code == 200
    assert raised.json()["priority"] == 5


@pytest.mark.asyncio
async def test_timestamp_corrections_are_manager_only(
    client, project, default_workflow, manager, annotator, auth_headers_for
):
    stamp = "2026-01-15T10:00:00+00:00"
    task_id = await _first_task_id(client, project.id, auth_headers_for(manager))

    denied = await client.patch(
        f"/api/v1/tasks/{task_id}", json={"deferred_at": stamp}, headers=auth_headers_for(annotator)
    )
    assert denied.status_code == 403

    allowed = await client.patch(
        f"/api/v1/tasks/{task_id}", json={"priority": 3}, headers=auth_headers_for(annotator)
    )
    assert allowed.status_code == 200

    cleared = await client.patch(
        f"/api/v1/tasks/{task_id}", json={"deferred_at": None}, headers=auth_headers_for(manager)
    )
    assert cleared.status_code == 422

    corrected = await client.patch(
        f"/api/v1/tasks/{task_id}", json={"deferred_at": stamp}, headers=auth_headers_for(manager)
    )
    assert corrected.status_code == 200
    assert corrected.json()["deferred_at"].startswith("2026-01-15T10:00:00")
