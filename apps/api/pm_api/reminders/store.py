from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pm_api.audit import write_audit
from pm_api.directory import COMPLETED
from pm_api.models import DeadlineReminder, Task, utcnow
from pm_api.reminders.errors import InvalidSchedule, NotFound, StoreFailure

CHANNELS = ("email", "inapp", "both")


async def insert_reminders(db: AsyncSession, rows: list[dict[str, Any]], *, actor_id: str | None = None) -> list[DeadlineReminder]:
  """
  Insert reminders as one unit of work.

  Either every row is committed or none is: any store error rolls the whole
  batch back and surfaces as StoreFailure.
  """
  if not rows:
    return []
  reminders = [DeadlineReminder(sent=False, **row) for row in rows]
  try:
    db.add_all(reminders)
    await db.flush()
    for r in reminders:
      await write_audit(
        db,
        event_type="reminder.created",
        entity_type="DeadlineReminder",
        entity_id=r.id,
        task_id=r.task_id,
        actor_id=actor_id,
        payload={"fireAt": r.fire_at.isoformat(), "recipientId": r.recipient_id, "channel": r.channel, "kind": r.kind},
      )
    await db.commit()
  except SQLAlchemyError as e:
    await db.rollback()
    raise StoreFailure("Failed to create reminders", details={"error": str(e), "count": len(rows)}) from e
  return reminders


async def create_reminder(
  db: AsyncSession,
  *,
  task_id: str,
  recipient_id: str,
  fire_at: datetime,
  channel: str = "email",
  now: datetime | None = None,
  actor_id: str | None = None,
) -> DeadlineReminder:
  now = now or utcnow()
  if fire_at <= now:
    raise InvalidSchedule("Reminder date must be in the future")
  tres = await db.execute(select(Task.id).where(Task.id == task_id))
  if tres.scalar_one_or_none() is None:
    raise NotFound("Task not found", details={"taskId": task_id})
  created = await insert_reminders(
    db,
    [{"task_id": task_id, "recipient_id": recipient_id, "fire_at": fire_at, "channel": channel, "kind": "manual"}],
    actor_id=actor_id,
  )
  return created[0]


async def scheduled_fire_times(db: AsyncSession, *, task_id: str, recipient_id: str) -> set[datetime]:
  res = await db.execute(
    select(DeadlineReminder.fire_at).where(
      DeadlineReminder.task_id == task_id,
      DeadlineReminder.recipient_id == recipient_id,
      DeadlineReminder.sent.is_(False),
    )
  )
  return set(res.scalars().all())


async def get_reminder(db: AsyncSession, reminder_id: str) -> DeadlineReminder:
  res = await db.execute(select(DeadlineReminder).where(DeadlineReminder.id == reminder_id))
  r = res.scalar_one_or_none()
  if r is None:
    raise NotFound("Reminder not found", details={"reminderId": reminder_id})
  return r


async def list_user_reminders(
  db: AsyncSession,
  *,
  user_id: str,
  limit: int = 50,
  offset: int = 0,
  pending_only: bool = False,
) -> list[DeadlineReminder]:
  q = select(DeadlineReminder).where(DeadlineReminder.recipient_id == user_id)
  if pending_only:
    q = q.where(DeadlineReminder.sent.is_(False))
  q = q.order_by(DeadlineReminder.fire_at.asc()).offset(max(0, int(offset))).limit(max(1, int(limit)))
  res = await db.execute(q)
  return list(res.scalars().all())


async def list_pending(db: AsyncSession, *, now: datetime, batch_size: int = 100) -> list[DeadlineReminder]:
  # Most overdue first.
  res = await db.execute(
    select(DeadlineReminder)
    .where(DeadlineReminder.sent.is_(False), DeadlineReminder.fire_at <= now)
    .order_by(DeadlineReminder.fire_at.asc())
    .limit(max(1, int(batch_size)))
  )
  return list(res.scalars().all())


async def list_overdue(db: AsyncSession, *, now: datetime) -> list[DeadlineReminder]:
  # Escalation reminders are left for process_batch to deliver.
  res = await db.execute(
    select(DeadlineReminder)
    .join(Task, Task.id == DeadlineReminder.task_id)
    .where(
      DeadlineReminder.sent.is_(False),
      DeadlineReminder.kind != "escalation",
      Task.deadline.is_not(None),
      Task.deadline < now,
      Task.status != COMPLETED,
    )
    .order_by(DeadlineReminder.fire_at.asc())
  )
  return list(res.scalars().all())


async def claim_reminder(db: AsyncSession, reminder_id: str, *, now: datetime) -> bool:
  """
  Mark a reminder sent only if it is still unsent.

  Returns False when another worker already claimed it; that is not an error.
  The caller owns the commit.
  """
  res = await db.execute(
    update(DeadlineReminder)
    .where(DeadlineReminder.id == reminder_id, DeadlineReminder.sent.is_(False))
    .values(sent=True, sent_at=now)
  )
  return res.rowcount == 1


async def update_reminder(
  db: AsyncSession,
  reminder_id: str,
  *,
  fire_at: datetime | None = None,
  channel: str | None = None,
  now: datetime | None = None,
  actor_id: str | None = None,
) -> DeadlineReminder:
  now = now or utcnow()
  r = await get_reminder(db, reminder_id)
  changes: dict[str, Any] = {}
  if fire_at is not None:
    if fire_at <= now:
      raise InvalidSchedule("Reminder date must be in the future")
    # A new fire time re-arms the reminder.
    r.fire_at = fire_at
    r.sent = False
    r.sent_at = None
    changes["fireAt"] = fire_at.isoformat()
  if channel is not None:
    if channel not in CHANNELS:
      raise InvalidSchedule(f"Unknown channel: {channel}")
    r.channel = channel
    changes["channel"] = channel
  if not changes:
    return r
  await write_audit(
    db,
    event_type="reminder.updated",
    entity_type="DeadlineReminder",
    entity_id=r.id,
    task_id=r.task_id,
    actor_id=actor_id,
    payload=changes,
  )
  await db.commit()
  return r


async def delete_reminder(db: AsyncSession, reminder_id: str, *, actor_id: str | None = None) -> DeadlineReminder:
  r = await get_reminder(db, reminder_id)
  await db.delete(r)
  await write_audit(
    db,
    event_type="reminder.deleted",
    entity_type="DeadlineReminder",
    entity_id=reminder_id,
    task_id=r.task_id,
    actor_id=actor_id,
    payload={},
  )
  await db.commit()
  return r


async def delete_task_reminders(db: AsyncSession, task_id: str, *, actor_id: str | None = None) -> list[str]:
  res = await db.execute(select(DeadlineReminder.id).where(DeadlineReminder.task_id == task_id))
  ids = list(res.scalars().all())
  if not ids:
    return []
  await db.execute(delete(DeadlineReminder).where(DeadlineReminder.task_id == task_id))
  await write_audit(
    db,
    event_type="reminder.task_cleared",
    entity_type="Task",
    entity_id=task_id,
    task_id=task_id,
    actor_id=actor_id,
    payload={"deleted": len(ids)},
  )
  await db.commit()
  return ids


async def user_reminder_stats(db: AsyncSession, *, user_id: str, now: datetime | None = None) -> dict[str, int]:
  now = now or utcnow()
  res = await db.execute(
    select(DeadlineReminder.sent, DeadlineReminder.fire_at).where(DeadlineReminder.recipient_id == user_id)
  )
  rows = res.all()
  return {
    "total": len(rows),
    "pending": sum(1 for row in rows if not row.sent and row.fire_at > now),
    "sent": sum(1 for row in rows if row.sent),
    "overdue": sum(1 for row in rows if not row.sent and row.fire_at <= now),
  }


async def reminder_analytics(
  db: AsyncSession,
  *,
  date_from: datetime | None = None,
  date_to: datetime | None = None,
) -> dict[str, Any]:
  q = select(DeadlineReminder.sent, DeadlineReminder.channel, DeadlineReminder.kind, Task.status).join(
    Task, Task.id == DeadlineReminder.task_id, isouter=True
  )
  if date_from is not None:
    q = q.where(DeadlineReminder.fire_at >= date_from)
  if date_to is not None:
    q = q.where(DeadlineReminder.fire_at <= date_to)
  rows = (await db.execute(q)).all()

  by_channel: dict[str, int] = {}
  by_kind: dict[str, int] = {}
  completed_after = 0
  still_pending = 0
  for row in rows:
    by_channel[row.channel] = by_channel.get(row.channel, 0) + 1
    by_kind[row.kind] = by_kind.get(row.kind, 0) + 1
    if row.sent:
      if row.status == COMPLETED:
        completed_after += 1
      else:
        still_pending += 1
  return {
    "total": len(rows),
    "sent": sum(1 for row in rows if row.sent),
    "pending": sum(1 for row in rows if not row.sent),
    "byChannel": by_channel,
    "byKind": by_kind,
    "effectiveness": {"tasksCompletedAfterReminder": completed_after, "tasksStillPending": still_pending},
  }
