from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from pm_api.audit import write_audit
from pm_api.config import settings
from pm_api.directory import get_task, get_user
from pm_api.models import utcnow
from pm_api.notifications.events import create_notification, get_preferences
from pm_api.notifications.service import EmailMessage, EmailTransport, email_transport_for
from pm_api.reminders.errors import NotFound, TransientDeliveryFailure
from pm_api.reminders.store import claim_reminder, list_pending

log = logging.getLogger(__name__)

EMAIL_CHANNELS = {"email", "both"}


@dataclass
class BatchResult:
  processed: int = 0
  sent: int = 0
  failed: int = 0
  errors: list[dict[str, Any]] = field(default_factory=list)

  def as_dict(self) -> dict[str, Any]:
    return {"processed": self.processed, "sent": self.sent, "failed": self.failed, "errors": list(self.errors)}


@dataclass(frozen=True)
class _Due:
  id: str
  task_id: str
  recipient_id: str
  channel: str
  fire_at: datetime


def _error(reminder_id: str, exc: Exception, *, stage: str) -> dict[str, Any]:
  return {"reminderId": reminder_id, "stage": stage, "kind": type(exc).__name__, "error": str(exc)}


async def process_batch(
  db: AsyncSession,
  *,
  max_batch_size: int = 50,
  now: datetime | None = None,
  transport: EmailTransport | None = None,
) -> BatchResult:
  """
  Deliver due reminders once.

  - Candidates are unsent reminders with `fire_at <= now`, most overdue first.
  - Each reminder is claimed (marked sent) with a conditional update before any
    delivery; a lost claim means another worker owns it and it is skipped.
  - Delivery is at-most-once: in-app and email failures are recorded in
    `errors` but never cause a resend.
  - A failing reminder never aborts the rest of the batch.
  """
  now = now or utcnow()
  transport = transport or email_transport_for(settings)
  result = BatchResult()

  candidates = [
    _Due(id=r.id, task_id=r.task_id, recipient_id=r.recipient_id, channel=r.channel, fire_at=r.fire_at)
    for r in await list_pending(db, now=now, batch_size=max_batch_size)
  ]
  if not candidates:
    return result

  for r in candidates:
    won = await claim_reminder(db, r.id, now=now)
    await db.commit()
    if not won:
      log.debug("reminder %s already claimed by another worker", r.id)
      continue

    result.processed += 1
    try:
      delivered = await _deliver(db, r, now=now, transport=transport, result=result)
    except Exception as e:
      await db.rollback()
      log.warning("reminder %s failed: %s", r.id, e)
      result.failed += 1
      result.errors.append(_error(r.id, e, stage="process"))
      continue
    if delivered:
      result.sent += 1

  log.info(
    "reminder batch processed=%d sent=%d failed=%d errors=%d",
    result.processed,
    result.sent,
    result.failed,
    len(result.errors),
  )
  return result


async def _deliver(db: AsyncSession, r: _Due, *, now: datetime, transport: EmailTransport, result: BatchResult) -> bool:
  task = await get_task(db, r.task_id)
  if task is None:
    raise NotFound("Task not found", details={"taskId": r.task_id})
  user = await get_user(db, r.recipient_id)
  if user is None:
    raise NotFound("Recipient not found", details={"userId": r.recipient_id})
  recipient_email = user.email
  prefs = await get_preferences(db, r.recipient_id)

  if not prefs.wants_deadline_reminders:
    # Claimed already, so it will not come back.
    log.debug("reminder %s suppressed by recipient preferences", r.id)
    return False

  due = task.deadline.strftime("%Y-%m-%d %H:%M UTC") if task.deadline else "no deadline"
  title = "Task Deadline Reminder"
  body = f'Task "{task.title}" is due on {due}'
  if task.project_name:
    body = f"{body}\nProject: {task.project_name}"

  try:
    await create_notification(
      db,
      user_id=r.recipient_id,
      title=title,
      body=body,
      event_type="reminder.due",
      entity_type="Task",
      entity_id=r.task_id,
    )
    await db.commit()
  except Exception as e:
    await db.rollback()
    log.warning("in-app notification for reminder %s failed: %s", r.id, e)
    result.errors.append(_error(r.id, TransientDeliveryFailure(str(e)), stage="inapp"))

  email_status = "skipped"
  if r.channel in EMAIL_CHANNELS and prefs.wants_email:
    try:
      await transport.send_email(EmailMessage(to=recipient_email, subject=f"Task Deadline Reminder: {task.title}", body=body))
      email_status = "sent"
    except Exception as e:
      log.warning("email for reminder %s failed: %s", r.id, e)
      email_status = "error"
      result.errors.append(_error(r.id, TransientDeliveryFailure(str(e)), stage="email"))

  # Delivery already happened; a lost audit row must not turn it into a failure.
  try:
    await write_audit(
      db,
      event_type="reminder.sent",
      entity_type="DeadlineReminder",
      entity_id=r.id,
      task_id=r.task_id,
      actor_id=None,
      payload={"channel": r.channel, "email": email_status, "fireAt": r.fire_at.isoformat()},
    )
    await db.commit()
  except Exception as e:
    await db.rollback()
    log.warning("audit for reminder %s failed: %s", r.id, e)
    result.errors.append(_error(r.id, e, stage="audit"))
  return True
