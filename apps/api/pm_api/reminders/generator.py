from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from pm_api.directory import TaskInfo, get_task
from pm_api.models import DeadlineReminder, as_utc, utcnow
from pm_api.reminders.errors import InvalidSchedule, NotFound, PreconditionFailed
from pm_api.reminders.store import CHANNELS, insert_reminders, scheduled_fire_times

log = logging.getLogger(__name__)

STANDARD_OFFSETS: dict[str, timedelta] = {
  "24hours": timedelta(hours=24),
  "3days": timedelta(days=3),
  "1week": timedelta(days=7),
  "2weeks": timedelta(days=14),
}
DEFAULT_OFFSETS = ("24hours", "3days", "1week")

NO_FUTURE_REMINDERS = "No future reminders to create"


@dataclass
class GenerationResult:
  reminders: list[DeadlineReminder] = field(default_factory=list)
  message: str = ""


def standard_instants(deadline: datetime, offsets: Iterable[str], now: datetime) -> list[datetime]:
  """Fire times `deadline - offset` that are strictly after `now`. Unknown offset names are ignored."""
  out: list[datetime] = []
  for name in offsets:
    delta = STANDARD_OFFSETS.get(str(name))
    if delta is None:
      continue
    candidate = deadline - delta
    if candidate > now:
      out.append(candidate)
  return out


def custom_instants(deadline: datetime, instants: Iterable[datetime], now: datetime) -> list[datetime]:
  """Caller-supplied fire times inside the open window (now, deadline)."""
  return [i for i in (as_utc(x) for x in instants) if now < i < deadline]


async def _task_with_deadline(db: AsyncSession, task_id: str) -> TaskInfo:
  task = await get_task(db, task_id)
  if task is None:
    raise NotFound("Task not found", details={"taskId": task_id})
  if task.deadline is None:
    raise PreconditionFailed("Task must have a deadline to set reminders", details={"taskId": task_id})
  return task


async def _schedule(
  db: AsyncSession,
  *,
  task_id: str,
  recipient_id: str,
  planned: list[tuple[datetime, str]],
  channel: str,
  actor_id: str | None,
) -> GenerationResult:
  if channel not in CHANNELS:
    raise InvalidSchedule(f"Unknown channel: {channel}")

  # Skip fire times already scheduled (and unsent) for this task and recipient.
  taken = await scheduled_fire_times(db, task_id=task_id, recipient_id=recipient_id)
  rows = []
  for fire_at, kind in sorted(planned):
    if fire_at in taken:
      continue
    taken.add(fire_at)
    rows.append({"task_id": task_id, "recipient_id": recipient_id, "fire_at": fire_at, "channel": channel, "kind": kind})

  if not rows:
    log.info("no future reminders for task=%s recipient=%s", task_id, recipient_id)
    return GenerationResult(reminders=[], message=NO_FUTURE_REMINDERS)

  reminders = await insert_reminders(db, rows, actor_id=actor_id)
  return GenerationResult(reminders=reminders, message=f"Created {len(reminders)} reminders")


async def generate_standard(
  db: AsyncSession,
  *,
  task_id: str,
  recipient_id: str,
  offsets: Iterable[str] = DEFAULT_OFFSETS,
  channel: str = "email",
  now: datetime | None = None,
  actor_id: str | None = None,
) -> GenerationResult:
  now = now or utcnow()
  task = await _task_with_deadline(db, task_id)
  planned = [(i, "standard") for i in standard_instants(task.deadline, offsets, now)]
  return await _schedule(db, task_id=task_id, recipient_id=recipient_id, planned=planned, channel=channel, actor_id=actor_id)


async def generate_custom(
  db: AsyncSession,
  *,
  task_id: str,
  recipient_id: str,
  instants: Iterable[datetime],
  channel: str = "email",
  now: datetime | None = None,
  actor_id: str | None = None,
) -> GenerationResult:
  now = now or utcnow()
  task = await _task_with_deadline(db, task_id)
  planned = [(i, "custom") for i in custom_instants(task.deadline, instants, now)]
  return await _schedule(db, task_id=task_id, recipient_id=recipient_id, planned=planned, channel=channel, actor_id=actor_id)


async def generate_smart(
  db: AsyncSession,
  *,
  task_id: str,
  recipient_id: str,
  offsets: Iterable[str] = DEFAULT_OFFSETS,
  instants: Iterable[datetime] = (),
  channel: str = "email",
  now: datetime | None = None,
  actor_id: str | None = None,
) -> GenerationResult:
  """Standard offsets and custom instants scheduled together in one batch."""
  now = now or utcnow()
  task = await _task_with_deadline(db, task_id)
  planned = [(i, "standard") for i in standard_instants(task.deadline, offsets, now)]
  planned += [(i, "custom") for i in custom_instants(task.deadline, instants, now)]
  return await _schedule(db, task_id=task_id, recipient_id=recipient_id, planned=planned, channel=channel, actor_id=actor_id)
