from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from pm_api.config import settings
from pm_api.deps import get_current_user, get_db, require_manager
from pm_api.models import DeadlineReminder, User, as_utc, utcnow
from pm_api.reminders import store
from pm_api.reminders.escalation import create_escalation, scan_and_escalate
from pm_api.reminders.generator import generate_smart
from pm_api.reminders.service import process_batch
from pm_api.schemas import (
  BatchResultOut,
  DeletedOut,
  EscalationIn,
  EscalationScanOut,
  GenerationOut,
  ReminderCreateIn,
  ReminderOut,
  ReminderStatsOut,
  ReminderUpdateIn,
  SmartRemindersIn,
)

router = APIRouter(prefix="/reminders", tags=["reminders"])


def _reminder_out(r: DeadlineReminder) -> ReminderOut:
  return ReminderOut(
    id=r.id,
    taskId=r.task_id,
    recipientId=r.recipient_id,
    fireAt=r.fire_at,
    channel=r.channel,
    kind=r.kind,
    sent=bool(r.sent),
    sentAt=r.sent_at,
    escalatedFromId=r.escalated_from_id,
    createdAt=r.created_at,
  )


async def _owned_reminder(db: AsyncSession, reminder_id: str, user: User) -> DeadlineReminder:
  r = await store.get_reminder(db, reminder_id)
  # Managers may manage any reminder; members only their own.
  if r.recipient_id != user.id and user.role not in ("manager", "admin"):
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reminder not found")
  return r


@router.post("", response_model=ReminderOut, status_code=status.HTTP_201_CREATED)
async def create_reminder(
  payload: ReminderCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> ReminderOut:
  r = await store.create_reminder(
    db,
    task_id=payload.taskId,
    recipient_id=user.id,
    fire_at=payload.fireAt,
    channel=payload.channel,
    actor_id=user.id,
  )
  return _reminder_out(r)


@router.post("/smart", response_model=GenerationOut, status_code=status.HTTP_201_CREATED)
async def create_smart_reminders(
  payload: SmartRemindersIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> GenerationOut:
  res = await generate_smart(
    db,
    task_id=payload.taskId,
    recipient_id=user.id,
    offsets=payload.offsets,
    instants=payload.customDates,
    channel=payload.channel,
    actor_id=user.id,
  )
  return GenerationOut(message=res.message, reminders=[_reminder_out(r) for r in res.reminders])


@router.get("", response_model=list[ReminderOut])
async def list_my_reminders(
  limit: int = Query(default=50, ge=1, le=500),
  offset: int = Query(default=0, ge=0),
  pendingOnly: bool = False,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[ReminderOut]:
  rows = await store.list_user_reminders(db, user_id=user.id, limit=limit, offset=offset, pending_only=pendingOnly)
  return [_reminder_out(r) for r in rows]


@router.get("/stats", response_model=ReminderStatsOut)
async def my_reminder_stats(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> ReminderStatsOut:
  return ReminderStatsOut(**(await store.user_reminder_stats(db, user_id=user.id)))


@router.get("/pending", response_model=list[ReminderOut])
async def list_pending_reminders(
  batchSize: int = Query(default=100, ge=1, le=1000),
  _: User = Depends(require_manager),
  db: AsyncSession = Depends(get_db),
) -> list[ReminderOut]:
  rows = await store.list_pending(db, now=utcnow(), batch_size=batchSize)
  return [_reminder_out(r) for r in rows]


@router.post("/process", response_model=BatchResultOut)
async def process_pending_reminders(
  batchSize: int | None = Query(default=None, ge=1, le=1000),
  _: User = Depends(require_manager),
  db: AsyncSession = Depends(get_db),
) -> BatchResultOut:
  res = await process_batch(db, max_batch_size=batchSize or settings.reminder_batch_size)
  return BatchResultOut(**res.as_dict())


@router.get("/overdue", response_model=list[ReminderOut])
async def list_overdue_reminders(_: User = Depends(require_manager), db: AsyncSession = Depends(get_db)) -> list[ReminderOut]:
  rows = await store.list_overdue(db, now=utcnow())
  return [_reminder_out(r) for r in rows]


@router.post("/escalation", response_model=list[ReminderOut], status_code=status.HTTP_201_CREATED)
async def create_escalation_reminders(
  payload: EscalationIn,
  user: User = Depends(require_manager),
  db: AsyncSession = Depends(get_db),
) -> list[ReminderOut]:
  rows = await create_escalation(
    db,
    task_id=payload.taskId,
    manager_id=payload.managerId,
    escalation_days=payload.escalationDays,
    actor_id=user.id,
  )
  return [_reminder_out(r) for r in rows]


@router.post("/escalation/scan", response_model=EscalationScanOut)
async def run_escalation_scan(_: User = Depends(require_manager), db: AsyncSession = Depends(get_db)) -> EscalationScanOut:
  res = await scan_and_escalate(db, escalation_days=settings.escalation_day_list())
  return EscalationScanOut(**res.as_dict())


@router.get("/analytics")
async def reminder_analytics(
  dateFrom: datetime | None = None,
  dateTo: datetime | None = None,
  _: User = Depends(require_manager),
  db: AsyncSession = Depends(get_db),
) -> dict:
  analytics = await store.reminder_analytics(
    db,
    date_from=as_utc(dateFrom) if dateFrom else None,
    date_to=as_utc(dateTo) if dateTo else None,
  )
  return {
    "analytics": analytics,
    "period": {"from": dateFrom or "all time", "to": dateTo or "present"},
  }


@router.delete("/task/{task_id}", response_model=DeletedOut)
async def delete_task_reminders(
  task_id: str,
  user: User = Depends(require_manager),
  db: AsyncSession = Depends(get_db),
) -> DeletedOut:
  ids = await store.delete_task_reminders(db, task_id, actor_id=user.id)
  return DeletedOut(deletedIds=ids)


@router.get("/{reminder_id}", response_model=ReminderOut)
async def get_reminder(reminder_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> ReminderOut:
  return _reminder_out(await _owned_reminder(db, reminder_id, user))


@router.patch("/{reminder_id}", response_model=ReminderOut)
async def update_reminder(
  reminder_id: str,
  payload: ReminderUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> ReminderOut:
  await _owned_reminder(db, reminder_id, user)
  r = await store.update_reminder(db, reminder_id, fire_at=payload.fireAt, channel=payload.channel, actor_id=user.id)
  return _reminder_out(r)


@router.delete("/{reminder_id}", response_model=DeletedOut)
async def delete_reminder(reminder_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> DeletedOut:
  await _owned_reminder(db, reminder_id, user)
  r = await store.delete_reminder(db, reminder_id, actor_id=user.id)
  return DeletedOut(deletedIds=[r.id])
