from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient


def _iso(dt: datetime) -> str:
  return dt.isoformat().replace("+00:00", "Z")


@pytest.mark.anyio
async def test_health_and_version(client: AsyncClient) -> None:
  assert (await client.get("/health")).json() == {"ok": True}
  assert "version" in (await client.get("/version")).json()


@pytest.mark.anyio
async def test_requests_without_identity_are_rejected(client: AsyncClient, seed) -> None:
  res = await client.get("/reminders")
  assert res.status_code == 401, res.text
  res = await client.get("/reminders", headers={"X-User-Id": "ghost"})
  assert res.status_code == 401, res.text


@pytest.mark.anyio
async def test_create_list_get_and_stats(client: AsyncClient, seed) -> None:
  now = datetime.now(timezone.utc)
  task = await seed.task(deadline=now + timedelta(days=5))
  h = seed.headers(seed.member)

  created = await client.post("/reminders", json={"taskId": task.id, "fireAt": _iso(now + timedelta(days=1)), "channel": "inapp"}, headers=h)
  assert created.status_code == 201, created.text
  body = created.json()
  assert body["sent"] is False
  assert body["recipientId"] == seed.member.id
  assert body["kind"] == "manual"

  listed = await client.get("/reminders", params={"pendingOnly": "true"}, headers=h)
  assert listed.status_code == 200, listed.text
  assert [r["id"] for r in listed.json()] == [body["id"]]

  one = await client.get(f"/reminders/{body['id']}", headers=h)
  assert one.status_code == 200, one.text

  stats = await client.get("/reminders/stats", headers=h)
  assert stats.json() == {"total": 1, "pending": 1, "sent": 0, "overdue": 0}


@pytest.mark.anyio
async def test_create_rejects_past_and_naive_times(client: AsyncClient, seed) -> None:
  now = datetime.now(timezone.utc)
  task = await seed.task(deadline=now + timedelta(days=5))
  h = seed.headers(seed.member)

  past = await client.post("/reminders", json={"taskId": task.id, "fireAt": _iso(now - timedelta(hours=1))}, headers=h)
  assert past.status_code == 400, past.text
  assert "future" in past.json()["detail"]

  naive = await client.post("/reminders", json={"taskId": task.id, "fireAt": "2030-01-01T10:00:00"}, headers=h)
  assert naive.status_code == 422, naive.text
  assert "timezone" in naive.text.lower()

  missing = await client.post("/reminders", json={"taskId": "nope", "fireAt": _iso(now + timedelta(hours=1))}, headers=h)
  assert missing.status_code == 404, missing.text


@pytest.mark.anyio
async def test_smart_reminders(client: AsyncClient, seed) -> None:
  now = datetime.now(timezone.utc)
  task = await seed.task(deadline=now + timedelta(days=10))
  no_deadline = await seed.task(deadline=None)
  h = seed.headers(seed.member)

  res = await client.post(
    "/reminders/smart",
    json={"taskId": task.id, "offsets": ["24hours", "3days", "1week", "2weeks"], "channel": "email"},
    headers=h,
  )
  assert res.status_code == 201, res.text
  assert len(res.json()["reminders"]) == 3

  again = await client.post("/reminders/smart", json={"taskId": task.id, "offsets": ["24hours"]}, headers=h)
  assert again.status_code == 201, again.text
  assert again.json()["reminders"] == []
  assert again.json()["message"] == "No future reminders to create"

  bad = await client.post("/reminders/smart", json={"taskId": no_deadline.id}, headers=h)
  assert bad.status_code == 412, bad.text

  unknown = await client.post("/reminders/smart", json={"taskId": task.id, "offsets": ["1year"]}, headers=h)
  assert unknown.status_code == 422, unknown.text


@pytest.mark.anyio
async def test_manager_routes_require_role(client: AsyncClient, seed) -> None:
  h = seed.headers(seed.member)
  for method, path in (("post", "/reminders/process"), ("get", "/reminders/pending"), ("get", "/reminders/overdue"), ("post", "/reminders/escalation/scan")):
    res = await getattr(client, method)(path, headers=h)
    assert res.status_code == 403, f"{path}: {res.text}"


@pytest.mark.anyio
async def test_manager_processes_due_reminders(client: AsyncClient, seed) -> None:
  now = datetime.now(timezone.utc)
  task = await seed.task(deadline=now + timedelta(hours=6))
  r = await seed.reminder(task_id=task.id, fire_at=now - timedelta(minutes=10), channel="inapp")
  mh = seed.headers(seed.manager)

  pending = await client.get("/reminders/pending", headers=mh)
  assert [x["id"] for x in pending.json()] == [r.id]

  res = await client.post("/reminders/process", headers=mh)
  assert res.status_code == 200, res.text
  assert res.json() == {"processed": 1, "sent": 1, "failed": 0, "errors": []}

  again = await client.post("/reminders/process", headers=mh)
  assert again.json()["processed"] == 0


@pytest.mark.anyio
async def test_escalation_routes(client: AsyncClient, seed) -> None:
  now = datetime.now(timezone.utc)
  late = await seed.task(deadline=now - timedelta(days=1))
  stale = await seed.reminder(task_id=late.id, fire_at=now - timedelta(days=2))
  mh = seed.headers(seed.manager)

  overdue = await client.get("/reminders/overdue", headers=mh)
  assert [x["id"] for x in overdue.json()] == [stale.id]

  scan = await client.post("/reminders/escalation/scan", headers=mh)
  assert scan.status_code == 200, scan.text
  assert scan.json()["escalationsCreated"] == 3

  manual = await client.post(
    "/reminders/escalation",
    json={"taskId": late.id, "managerId": seed.manager.id, "escalationDays": [2]},
    headers=mh,
  )
  assert manual.status_code == 201, manual.text
  assert manual.json()[0]["channel"] == "both"

  unknown = await client.post(
    "/reminders/escalation",
    json={"taskId": "no-such-task", "managerId": seed.manager.id, "escalationDays": [2]},
    headers=mh,
  )
  assert unknown.status_code == 404, unknown.text
  assert unknown.json()["context"] == {"taskId": "no-such-task"}

  # Pending escalations belong to the dispatcher, not the overdue list.
  assert (await client.get("/reminders/overdue", headers=mh)).json() == []

  analytics = await client.get("/reminders/analytics", headers=mh)
  assert analytics.status_code == 200, analytics.text
  assert analytics.json()["analytics"]["byKind"]["escalation"] == 4


@pytest.mark.anyio
async def test_update_and_delete(client: AsyncClient, seed) -> None:
  now = datetime.now(timezone.utc)
  task = await seed.task(deadline=now + timedelta(days=5))
  r = await seed.reminder(task_id=task.id, fire_at=now - timedelta(hours=1), sent=True)
  h = seed.headers(seed.member)

  bad = await client.patch(f"/reminders/{r.id}", json={"fireAt": _iso(now - timedelta(minutes=1))}, headers=h)
  assert bad.status_code == 400, bad.text

  res = await client.patch(f"/reminders/{r.id}", json={"fireAt": _iso(now + timedelta(days=1))}, headers=h)
  assert res.status_code == 200, res.text
  assert res.json()["sent"] is False

  outsider = await seed.user(email="outsider@pm.local", name="Outsider")
  hidden = await client.get(f"/reminders/{r.id}", headers=seed.headers(outsider))
  assert hidden.status_code == 404, hidden.text

  deleted = await client.delete(f"/reminders/{r.id}", headers=h)
  assert deleted.status_code == 200, deleted.text
  assert deleted.json()["deletedIds"] == [r.id]
  assert (await client.get(f"/reminders/{r.id}", headers=h)).status_code == 404


@pytest.mark.anyio
async def test_delete_task_reminders_is_manager_only(client: AsyncClient, seed) -> None:
  now = datetime.now(timezone.utc)
  task = await seed.task(deadline=now + timedelta(days=5))
  await seed.reminder(task_id=task.id, fire_at=now + timedelta(hours=1))
  await seed.reminder(task_id=task.id, fire_at=now + timedelta(hours=2))

  denied = await client.delete(f"/reminders/task/{task.id}", headers=seed.headers(seed.member))
  assert denied.status_code == 403, denied.text

  ok = await client.delete(f"/reminders/task/{task.id}", headers=seed.headers(seed.manager))
  assert ok.status_code == 200, ok.text
  assert len(ok.json()["deletedIds"]) == 2
