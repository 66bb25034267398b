from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pm_api.models import InAppNotification, NotificationPreference


@dataclass(frozen=True)
class ReminderPreferences:
  wants_deadline_reminders: bool
  wants_email: bool


# Applied when a user has no preference row.
DEFAULT_PREFERENCES = ReminderPreferences(wants_deadline_reminders=True, wants_email=True)


async def get_preferences(db: AsyncSession, user_id: str) -> ReminderPreferences:
  res = await db.execute(select(NotificationPreference).where(NotificationPreference.user_id == user_id))
  p = res.scalar_one_or_none()
  if p is None:
    return DEFAULT_PREFERENCES
  return ReminderPreferences(
    wants_deadline_reminders=bool(p.deadline_reminders),
    wants_email=bool(p.email_notifications),
  )


async def create_notification(
  db: AsyncSession,
  *,
  user_id: str,
  title: str,
  body: str,
  event_type: str | None = None,
  entity_type: str | None = None,
  entity_id: str | None = None,
) -> InAppNotification:
  n = InAppNotification(
    user_id=user_id,
    title=title,
    body=body,
    event_type=event_type,
    entity_type=entity_type,
    entity_id=entity_id,
  )
  db.add(n)
  await db.flush()
  return n
