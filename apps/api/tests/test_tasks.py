from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from sprintr.models import Task, TaskHistory
from sprintr.routers import tasks as tasks_router
from conftest import create_project, create_task, create_workspace, join_workspace, login, member_for, sign_in_new_user


async def _workspace_with_project(client: AsyncClient, auth, email: str = "owner@example.com") -> tuple[dict, dict, dict]:
  user = await sign_in_new_user(client, auth, email, "Owner")
  ws = await create_workspace(client)
  project = await create_project(client, ws["$id"], "Sprint Runner")
  me = await member_for(client, ws["$id"], user.id)
  return ws, project, me


@pytest.mark.anyio
async def test_create_then_get_round_trip(client: AsyncClient, auth) -> None:
  ws, project, me = await _workspace_with_project(client, auth)
  created = await create_task(
    client,
    workspace_id=ws["$id"],
    project_id=project["$id"],
    assignee_id=me["$id"],
    summary="Ship the board",
    status="IN_PROGRESS",
    workType="STORY",
    priority="MEDIUM",
    description="details",
  )
  assert created["name"] == "SR-01"
  assert created["position"] == 1000
  assert created["reporterId"] == me["$id"]

  res = await client.get(f"/tasks/{created['$id']}")
  assert res.status_code == 200, res.text
  got = res.json()["data"]
  for key in ("summary", "status", "workType", "priority", "assigneeId", "description", "name", "position"):
    assert got[key] == created[key]
  assert got["summary"] == "Ship the board"
  assert got["status"] == "IN_PROGRESS"
  assert got["$createdAt"] and got["$updatedAt"]
  assert got["project"]["$id"] == project["$id"]
  assert got["assignee"]["name"] == "Owner"
  assert got["reporter"]["$id"] == me["$id"]


@pytest.mark.anyio
async def test_task_codes_and_positions_increment(client: AsyncClient, auth) -> None:
  ws, project, me = await _workspace_with_project(client, auth)
  ids = dict(workspace_id=ws["$id"], project_id=project["$id"], assignee_id=me["$id"])
  t1 = await create_task(client, **ids)
  t2 = await create_task(client, **ids)
  t3 = await create_task(client, **ids, status="DONE")
  assert [t1["name"], t2["name"], t3["name"]] == ["SR-01", "SR-02", "SR-03"]
  assert [t1["position"], t2["position"], t3["position"]] == [1000, 2000, 1000]

  other = await create_project(client, ws["$id"], "Task")
  t4 = await create_task(client, workspace_id=ws["$id"], project_id=other["$id"], assignee_id=me["$id"])
  assert t4["name"] == "TS-01"


@pytest.mark.anyio
async def test_create_task_validation(client: AsyncClient, auth) -> None:
  ws, project, me = await _workspace_with_project(client, auth)

  bad = await client.post(
    "/tasks",
    json={"summary": "", "status": "NOPE", "workType": "BUG", "priority": "HIGH", "workspaceId": ws["$id"], "projectId": project["$id"]},
  )
  assert bad.status_code == 400
  body = bad.json()
  assert body["error"] == "Invalid request."
  assert {tuple(f["loc"])[-1] for f in body["fields"]} >= {"summary", "status", "assigneeId"}

  missing = await client.post(
    "/tasks",
    json={
      "summary": "x",
      "status": "TODO",
      "workType": "BUG",
      "priority": "HIGH",
      "workspaceId": ws["$id"],
      "projectId": "00000000-0000-0000-0000-000000000000",
      "assigneeId": me["$id"],
    },
  )
  assert missing.status_code == 404
  assert missing.json() == {"error": "Project not found."}


@pytest.mark.anyio
async def test_assignee_must_be_workspace_member(client: AsyncClient, auth) -> None:
  ws, project, _ = await _workspace_with_project(client, auth)
  outsider = await sign_in_new_user(client, auth, "outsider@example.com")
  other_ws = await create_workspace(client, "Other")
  outsider_m = await member_for(client, other_ws["$id"], outsider.id)

  await login(client, "owner@example.com")
  res = await client.post(
    "/tasks",
    json={
      "summary": "x",
      "status": "TODO",
      "workType": "BUG",
      "priority": "HIGH",
      "workspaceId": ws["$id"],
      "projectId": project["$id"],
      "assigneeId": outsider_m["$id"],
    },
  )
  assert res.status_code == 400
  assert res.json() == {"error": "Assignee must be a member of this workspace."}


@pytest.mark.anyio
async def test_list_tasks_filters(client: AsyncClient, auth) -> None:
  ws, project, me = await _workspace_with_project(client, auth)
  ids = dict(workspace_id=ws["$id"], project_id=project["$id"], assignee_id=me["$id"])
  await create_task(client, **ids, summary="Login page")
  await create_task(client, **ids, summary="Billing export", status="DONE")

  res = await client.get("/tasks", params={"workspaceId": ws["$id"]})
  assert res.status_code == 200, res.text
  assert res.json()["data"]["total"] == 2

  done = await client.get("/tasks", params={"workspaceId": ws["$id"], "status": "DONE"})
  assert [t["summary"] for t in done.json()["data"]["documents"]] == ["Billing export"]

  found = await client.get("/tasks", params={"workspaceId": ws["$id"], "search": "login"})
  assert [t["summary"] for t in found.json()["data"]["documents"]] == ["Login page"]
  assert found.json()["data"]["documents"][0]["project"]["name"] == "Sprint Runner"


@pytest.mark.anyio
async def test_non_member_cannot_read_tasks(client: AsyncClient, auth) -> None:
  ws, project, me = await _workspace_with_project(client, auth)
  task = await create_task(client, workspace_id=ws["$id"], project_id=project["$id"], assignee_id=me["$id"])
  await sign_in_new_user(client, auth, "stranger@example.com")

  assert (await client.get(f"/tasks/{task['$id']}")).status_code == 401
  assert (await client.get("/tasks", params={"workspaceId": ws["$id"]})).status_code == 401
  assert (await client.delete(f"/tasks/{task['$id']}")).status_code == 401


@pytest.mark.anyio
async def test_delete_task(client: AsyncClient, auth) -> None:
  ws, project, me = await _workspace_with_project(client, auth)
  task = await create_task(client, workspace_id=ws["$id"], project_id=project["$id"], assignee_id=me["$id"])
  res = await client.delete(f"/tasks/{task['$id']}")
  assert res.status_code == 200, res.text
  assert res.json()["data"]["$id"] == task["$id"]
  gone = await client.get(f"/tasks/{task['$id']}")
  assert gone.status_code == 404
  assert gone.json() == {"error": "Task not found."}


@pytest.mark.anyio
async def test_bulk_update_moves_tasks_and_records_status(client: AsyncClient, auth) -> None:
  ws, project, me = await _workspace_with_project(client, auth)
  ids = dict(workspace_id=ws["$id"], project_id=project["$id"], assignee_id=me["$id"])
  t1 = await create_task(client, **ids)
  t2 = await create_task(client, **ids)

  res = await client.post(
    "/tasks/bulk-update",
    json={"tasks": [{"$id": t1["$id"], "status": "DONE", "position": 3000}, {"$id": t2["$id"], "status": "TODO", "position": 1000}]},
  )
  assert res.status_code == 200, res.text
  data = res.json()["data"]
  assert data["workspaceId"] == ws["$id"]
  moved = {t["$id"]: t for t in data["updatedTasks"]}
  assert (moved[t1["$id"]]["status"], moved[t1["$id"]]["position"]) == ("DONE", 3000)
  assert (moved[t2["$id"]]["status"], moved[t2["$id"]]["position"]) == ("TODO", 1000)

  h1 = (await client.get(f"/tasks/{t1['$id']}/history")).json()["data"]["documents"]
  h2 = (await client.get(f"/tasks/{t2['$id']}/history")).json()["data"]["documents"]
  assert [(h["field"], h["fromValue"], h["toValue"]) for h in h1 if h["field"] == "status"] == [("status", "TODO", "DONE")]
  assert [h for h in h2 if h["field"] == "status"] == []


@pytest.mark.anyio
async def test_bulk_update_rejects_position_out_of_range(client: AsyncClient, auth) -> None:
  ws, project, me = await _workspace_with_project(client, auth)
  t1 = await create_task(client, workspace_id=ws["$id"], project_id=project["$id"], assignee_id=me["$id"])
  res = await client.post("/tasks/bulk-update", json={"tasks": [{"$id": t1["$id"], "status": "DONE", "position": 100_001}]})
  assert res.status_code == 400
  assert res.json()["error"] == "Invalid request."


@pytest.mark.anyio
async def test_bulk_update_across_workspaces_writes_nothing(client: AsyncClient, auth, sessions) -> None:
  ws, project, me = await _workspace_with_project(client, auth)
  t1 = await create_task(client, workspace_id=ws["$id"], project_id=project["$id"], assignee_id=me["$id"])
  ws2 = await create_workspace(client, "Second")
  project2 = await create_project(client, ws2["$id"], "Other")
  me2 = await member_for(client, ws2["$id"], me["userId"])
  t2 = await create_task(client, workspace_id=ws2["$id"], project_id=project2["$id"], assignee_id=me2["$id"])

  res = await client.post(
    "/tasks/bulk-update",
    json={"tasks": [{"$id": t1["$id"], "status": "DONE", "position": 5000}, {"$id": t2["$id"], "status": "DONE", "position": 5000}]},
  )
  assert res.status_code == 401
  assert res.json() == {"error": "All tasks must belong to the same workspace."}

  async with sessions() as db:
    rows = (await db.execute(select(Task.status, Task.position).where(Task.id.in_([t1["$id"], t2["$id"]])))).all()
    assert sorted(tuple(r) for r in rows) == [("TODO", 1000), ("TODO", 1000)]
    status_rows = await db.execute(select(func.count()).select_from(TaskHistory).where(TaskHistory.field == "status"))
    assert status_rows.scalar_one() == 0


@pytest.mark.anyio
async def test_bulk_update_requires_membership(client: AsyncClient, auth) -> None:
  ws, project, me = await _workspace_with_project(client, auth)
  t1 = await create_task(client, workspace_id=ws["$id"], project_id=project["$id"], assignee_id=me["$id"])
  await sign_in_new_user(client, auth, "stranger@example.com")
  res = await client.post("/tasks/bulk-update", json={"tasks": [{"$id": t1["$id"], "status": "DONE", "position": 2000}]})
  assert res.status_code == 401
  assert res.json() == {"error": "Unauthorized."}


@pytest.mark.anyio
async def test_comments_round_trip(client: AsyncClient, auth) -> None:
  ws, project, me = await _workspace_with_project(client, auth)
  task = await create_task(client, workspace_id=ws["$id"], project_id=project["$id"], assignee_id=me["$id"])

  first = await client.post(f"/tasks/{task['$id']}/comments", json={"body": "first"})
  assert first.status_code == 200, first.text
  await client.post(f"/tasks/{task['$id']}/comments", json={"body": "second", "attachments": ["https://files.example.com/s.png"]})

  empty = await client.post(f"/tasks/{task['$id']}/comments", json={"body": "   "})
  assert empty.status_code == 400

  res = await client.get(f"/tasks/{task['$id']}/comments")
  assert res.status_code == 200, res.text
  docs = res.json()["data"]["documents"]
  assert [c["body"] for c in docs] == ["first", "second"]
  assert docs[1]["attachments"] == ["https://files.example.com/s.png"]
  assert docs[0]["author"]["name"] == "Owner"


@pytest.mark.anyio
async def test_reassign_moves_task_between_members(client: AsyncClient, auth) -> None:
  ws, project, me = await _workspace_with_project(client, auth)
  mate = await sign_in_new_user(client, auth, "mate@example.com", "Mate")
  await join_workspace(client, ws)
  await login(client, "owner@example.com")
  mate_m = await member_for(client, ws["$id"], mate.id)
  task = await create_task(client, workspace_id=ws["$id"], project_id=project["$id"], assignee_id=me["$id"])

  res = await client.patch(f"/tasks/{task['$id']}", json={"assigneeId": mate_m["$id"]})
  assert res.status_code == 200, res.text
  assert res.json()["data"]["assigneeId"] == mate_m["$id"]

  history = (await client.get(f"/tasks/{task['$id']}/history")).json()["data"]["documents"]
  assert ("assigneeId", me["$id"], mate_m["$id"]) in [(h["field"], h["fromValue"], h["toValue"]) for h in history]


@pytest.mark.anyio
async def test_task_code_collision_returns_conflict(client: AsyncClient, auth, sessions, monkeypatch) -> None:
  ws, project, me = await _workspace_with_project(client, auth)
  ids = dict(workspace_id=ws["$id"], project_id=project["$id"], assignee_id=me["$id"])
  first = await create_task(client, **ids)

  # Another request won the read-then-insert race for the same code.
  async def _stale_code(db, *, project_id: str, prefix: str) -> str:
    return first["name"]

  monkeypatch.setattr(tasks_router, "next_task_code", _stale_code)
  res = await client.post(
    "/tasks",
    json={
      "summary": "Second",
      "status": "TODO",
      "workType": "BUG",
      "priority": "LOW",
      "workspaceId": ws["$id"],
      "projectId": project["$id"],
      "assigneeId": me["$id"],
    },
  )
  assert res.status_code == 409, res.text
  assert res.json() == {"error": "Task code already taken, please retry."}

  async with sessions() as db:
    assert (await db.execute(select(func.count()).select_from(Task))).scalar_one() == 1
    assert (await db.execute(select(func.count()).select_from(TaskHistory))).scalar_one() == 1

  monkeypatch.undo()
  retried = await create_task(client, **ids)
  assert retried["name"] == "SR-02"


@pytest.mark.anyio
async def test_move_task_to_project_with_same_code(client: AsyncClient, auth) -> None:
  ws, project, me = await _workspace_with_project(client, auth)
  sales = await create_project(client, ws["$id"], "Sales Report")
  apollo = await create_project(client, ws["$id"], "Apollo")
  task = await create_task(client, workspace_id=ws["$id"], project_id=project["$id"], assignee_id=me["$id"])
  other = await create_task(client, workspace_id=ws["$id"], project_id=sales["$id"], assignee_id=me["$id"])
  assert task["name"] == other["name"] == "SR-01"

  res = await client.patch(f"/tasks/{task['$id']}", json={"projectId": sales["$id"]})
  assert res.status_code == 409, res.text
  assert res.json() == {"error": "Task code already exists in the target project."}
  assert (await client.get(f"/tasks/{task['$id']}")).json()["data"]["projectId"] == project["$id"]

  moved = await client.patch(f"/tasks/{task['$id']}", json={"projectId": apollo["$id"]})
  assert moved.status_code == 200, moved.text
  assert moved.json()["data"]["projectId"] == apollo["$id"]
  assert moved.json()["data"]["name"] == "SR-01"
