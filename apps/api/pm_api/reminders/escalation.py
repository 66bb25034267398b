from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from pm_api.directory import get_project_manager, get_task
from pm_api.models import DeadlineReminder, utcnow
from pm_api.reminders.errors import NotFound
from pm_api.reminders.store import claim_reminder, insert_reminders, list_overdue

log = logging.getLogger(__name__)

DEFAULT_ESCALATION_DAYS = (1, 3, 7)


@dataclass
class EscalationResult:
  scanned: int = 0
  escalated: int = 0
  escalations_created: int = 0
  errors: list[dict[str, Any]] = field(default_factory=list)

  def as_dict(self) -> dict[str, Any]:
    return {
      "scanned": self.scanned,
      "escalated": self.escalated,
      "escalationsCreated": self.escalations_created,
      "errors": list(self.errors),
    }


async def create_escalation(
  db: AsyncSession,
  *,
  task_id: str,
  manager_id: str,
  escalation_days: Iterable[int] = DEFAULT_ESCALATION_DAYS,
  now: datetime | None = None,
  escalated_from_id: str | None = None,
  actor_id: str | None = None,
) -> list[DeadlineReminder]:
  """Reminders for the manager at `now + d days`. The task is already late, so no deadline window applies."""
  now = now or utcnow()
  if await get_task(db, task_id) is None:
    raise NotFound("Task not found", details={"taskId": task_id})
  rows = [
    {
      "task_id": task_id,
      "recipient_id": manager_id,
      "fire_at": now + timedelta(days=int(days)),
      "channel": "both",
      "kind": "escalation",
      "escalated_from_id": escalated_from_id,
    }
    for days in escalation_days
  ]
  return await insert_reminders(db, rows, actor_id=actor_id)


async def scan_and_escalate(
  db: AsyncSession,
  *,
  now: datetime | None = None,
  escalation_days: Iterable[int] = DEFAULT_ESCALATION_DAYS,
) -> EscalationResult:
  """
  Escalate unsent reminders whose task is past its deadline and not completed.

  Every overdue reminder found is consumed (marked sent) whether or not an
  escalation is created, so each one escalates at most once.
  """
  now = now or utcnow()
  days = list(escalation_days)
  result = EscalationResult()

  overdue = [(r.id, r.task_id, r.recipient_id) for r in await list_overdue(db, now=now)]
  for reminder_id, task_id, recipient_id in overdue:
    result.scanned += 1
    try:
      won = await claim_reminder(db, reminder_id, now=now)
      await db.commit()
      if not won:
        continue
      task = await get_task(db, task_id)
      manager_id = await get_project_manager(db, task.project_id if task else None)
      if not manager_id or manager_id == recipient_id:
        continue
      created = await create_escalation(
        db,
        task_id=task_id,
        manager_id=manager_id,
        escalation_days=days,
        now=now,
        escalated_from_id=reminder_id,
      )
      result.escalated += 1
      result.escalations_created += len(created)
    except Exception as e:
      await db.rollback()
      log.warning("escalation for reminder %s failed: %s", reminder_id, e)
      result.errors.append({"reminderId": reminder_id, "kind": type(e).__name__, "error": str(e)})

  if result.scanned:
    log.info(
      "escalation scan scanned=%d escalated=%d created=%d",
      result.scanned,
      result.escalated,
      result.escalations_created,
    )
  return result
