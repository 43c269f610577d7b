from __future__ import annotations

import pytest
from httpx import AsyncClient

from sprintr.repositories import NotificationRepository
from conftest import create_project, create_task, create_workspace, join_workspace, login, member_for, sign_in_new_user


async def _team(client: AsyncClient, auth) -> dict:
  """Owner, an assignee and a bystander in one workspace; leaves the owner signed in."""
  owner = await sign_in_new_user(client, auth, "owner@example.com", "Olivia Owner")
  ws = await create_workspace(client)
  project = await create_project(client, ws["$id"], "Sprint Runner")
  dev = await sign_in_new_user(client, auth, "dev@example.com", "Dev Person")
  await join_workspace(client, ws)
  watcher = await sign_in_new_user(client, auth, "watcher@example.com", "Wanda Watcher")
  await join_workspace(client, ws)
  await login(client, "owner@example.com")
  return {
    "ws": ws,
    "project": project,
    "owner": owner,
    "dev": dev,
    "watcher": watcher,
    "owner_m": await member_for(client, ws["$id"], owner.id),
    "dev_m": await member_for(client, ws["$id"], dev.id),
  }


async def _notifications(client: AsyncClient, **params) -> dict:
  res = await client.get("/notifications", params=params)
  assert res.status_code == 200, res.text
  return res.json()["data"]


@pytest.mark.anyio
async def test_task_created_notifies_assignee(client: AsyncClient, auth, mailer) -> None:
  team = await _team(client, auth)
  task = await create_task(client, workspace_id=team["ws"]["$id"], project_id=team["project"]["$id"], assignee_id=team["dev_m"]["$id"])

  assert [m.to for m in mailer.sent] == ["dev@example.com"]
  assert mailer.sent[0].subject == f"Olivia Owner created {task['name']}"
  assert "View issue" in mailer.sent[0].html

  await login(client, "dev@example.com")
  data = await _notifications(client)
  assert data["unreadCount"] == 1
  n = data["documents"][0]
  assert n["type"] == "task_created"
  assert n["title"] == f"Olivia Owner created {task['name']}"
  assert n["body"] == task["summary"]
  assert n["taskId"] == task["$id"]
  assert n["actorId"] == team["owner_m"]["$id"]
  assert n["link"] == f"/workspaces/{team['ws']['$id']}/tasks"
  assert n["metadata"] == {"taskId": task["$id"], "projectId": team["project"]["$id"]}
  assert n["readAt"] is None


@pytest.mark.anyio
async def test_self_assignment_sends_nothing(client: AsyncClient, auth, mailer) -> None:
  team = await _team(client, auth)
  await create_task(client, workspace_id=team["ws"]["$id"], project_id=team["project"]["$id"], assignee_id=team["owner_m"]["$id"])
  assert mailer.sent == []
  assert (await _notifications(client))["documents"] == []


@pytest.mark.anyio
async def test_reassignment_notifies_new_assignee(client: AsyncClient, auth, mailer) -> None:
  team = await _team(client, auth)
  task = await create_task(client, workspace_id=team["ws"]["$id"], project_id=team["project"]["$id"], assignee_id=team["owner_m"]["$id"])

  res = await client.patch(f"/tasks/{task['$id']}", json={"assigneeId": team["dev_m"]["$id"]})
  assert res.status_code == 200, res.text
  assert [(m.to, m.subject) for m in mailer.sent] == [("dev@example.com", f"Olivia Owner assigned you {task['name']}")]

  # Patching other fields does not re-notify.
  await client.patch(f"/tasks/{task['$id']}", json={"priority": "LOW"})
  assert len(mailer.sent) == 1


@pytest.mark.anyio
async def test_comment_notifies_assignee_and_mentions(client: AsyncClient, auth, mailer) -> None:
  team = await _team(client, auth)
  task = await create_task(client, workspace_id=team["ws"]["$id"], project_id=team["project"]["$id"], assignee_id=team["dev_m"]["$id"])
  mailer.sent.clear()

  body = "Can you check this @Watcher@example.com? also @nobody@example.com and @owner@example.com"
  res = await client.post(f"/tasks/{task['$id']}/comments", json={"body": body})
  assert res.status_code == 200, res.text

  by_recipient = {m.to: m.subject for m in mailer.sent}
  assert by_recipient == {
    "dev@example.com": f"Olivia Owner commented on {task['name']}",
    "watcher@example.com": f"Olivia Owner mentioned you in {task['name']}",
  }

  await login(client, "watcher@example.com")
  docs = (await _notifications(client, workspaceId=team["ws"]["$id"]))["documents"]
  assert [(n["type"], n["body"]) for n in docs] == [("mentioned", task["summary"])]


@pytest.mark.anyio
async def test_mail_failure_does_not_fail_comment(client: AsyncClient, auth, mailer) -> None:
  team = await _team(client, auth)
  task = await create_task(client, workspace_id=team["ws"]["$id"], project_id=team["project"]["$id"], assignee_id=team["dev_m"]["$id"])
  mailer.fail = True

  res = await client.post(f"/tasks/{task['$id']}/comments", json={"body": "ping"})
  assert res.status_code == 200, res.text
  assert res.json()["data"]["body"] == "ping"

  # The in-app row is still written.
  await login(client, "dev@example.com")
  types = [n["type"] for n in (await _notifications(client))["documents"]]
  assert types == ["comment_added", "task_created"]


@pytest.mark.anyio
async def test_mark_read_endpoints(client: AsyncClient, auth) -> None:
  team = await _team(client, auth)
  ids = dict(workspace_id=team["ws"]["$id"], project_id=team["project"]["$id"], assignee_id=team["dev_m"]["$id"])
  for _ in range(3):
    await create_task(client, **ids)

  await login(client, "dev@example.com")
  data = await _notifications(client, limit=2)
  assert len(data["documents"]) == 2
  assert data["unreadCount"] == 3

  first = data["documents"][0]
  res = await client.patch(f"/notifications/{first['$id']}/read")
  assert res.status_code == 200, res.text
  assert res.json()["data"]["readAt"] is not None
  assert (await _notifications(client))["unreadCount"] == 2

  res = await client.patch("/notifications/read", json={"workspaceId": team["ws"]["$id"]})
  assert res.status_code == 200, res.text
  assert len(res.json()["data"]) == 2
  assert (await _notifications(client))["unreadCount"] == 0

  # Someone else's notification looks missing.
  await login(client, "watcher@example.com")
  res = await client.patch(f"/notifications/{first['$id']}/read")
  assert res.status_code == 404
  assert res.json() == {"error": "Notification not found."}


@pytest.mark.anyio
async def test_notification_limit_bounds(client: AsyncClient, auth) -> None:
  await sign_in_new_user(client, auth, "owner@example.com")
  assert (await client.get("/notifications", params={"limit": 0})).status_code == 400
  assert (await client.get("/notifications", params={"limit": 51})).status_code == 400
  assert (await client.get("/notifications", params={"limit": 50})).status_code == 200


@pytest.mark.anyio
async def test_notification_insert_failure_keeps_mutation(client: AsyncClient, auth, mailer, monkeypatch) -> None:
  team = await _team(client, auth)

  async def _broken_create(self, **fields):
    raise RuntimeError("notifications table unavailable")

  monkeypatch.setattr(NotificationRepository, "create", _broken_create)

  task = await create_task(client, workspace_id=team["ws"]["$id"], project_id=team["project"]["$id"], assignee_id=team["dev_m"]["$id"])
  assert [m.to for m in mailer.sent] == ["dev@example.com"]
  got = await client.get(f"/tasks/{task['$id']}")
  assert got.status_code == 200, got.text
  assert got.json()["data"]["summary"] == task["summary"]

  res = await client.post(f"/tasks/{task['$id']}/comments", json={"body": "see @watcher@example.com"})
  assert res.status_code == 200, res.text
  assert sorted(m.to for m in mailer.sent[1:]) == ["dev@example.com", "watcher@example.com"]

  comments = await client.get(f"/tasks/{task['$id']}/comments")
  assert [c["body"] for c in comments.json()["data"]["documents"]] == ["see @watcher@example.com"]

  monkeypatch.undo()
  await login(client, "dev@example.com")
  assert await _notifications(client) == {"documents": [], "unreadCount": 0}
