from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic import field_validator

Channel = Literal["email", "inapp", "both"]
StandardOffset = Literal["24hours", "3days", "1week", "2weeks"]


def _parse_dt_utc_require_tz(value: object) -> object:
  if value is None:
    return None
  if isinstance(value, datetime):
    dt = value
  elif isinstance(value, str):
    s = value.strip()
    if not s:
      return None
    dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
  else:
    return value
  if dt.tzinfo is None:
    raise ValueError("Datetime must include a timezone offset")
  return dt.astimezone(timezone.utc)


class ReminderCreateIn(BaseModel):
  taskId: str
  fireAt: datetime
  channel: Channel = "email"

  @field_validator("fireAt", mode="before")
  @classmethod
  def _fire_at_to_utc(cls, v: object) -> object:
    return _parse_dt_utc_require_tz(v)


class SmartRemindersIn(BaseModel):
  taskId: str
  offsets: list[StandardOffset] = ["24hours", "1week", "3days"]
  customDates: list[datetime] = Field(default_factory=list)
  channel: Channel = "email"

  @field_validator("customDates", mode="before")
  @classmethod
  def _custom_to_utc(cls, v: object) -> object:
    if not isinstance(v, list):
      return v
    return [_parse_dt_utc_require_tz(x) for x in v]


class ReminderUpdateIn(BaseModel):
  fireAt: datetime | None = None
  channel: Channel | None = None

  @field_validator("fireAt", mode="before")
  @classmethod
  def _fire_at_to_utc(cls, v: object) -> object:
    return _parse_dt_utc_require_tz(v)


class EscalationIn(BaseModel):
  taskId: str
  managerId: str
  escalationDays: list[int] = Field(default_factory=lambda: [1, 3, 7])

  @field_validator("escalationDays")
  @classmethod
  def _positive_days(cls, v: list[int]) -> list[int]:
    out = [int(d) for d in v if int(d) > 0]
    if not out:
      raise ValueError("escalationDays must contain at least one positive day count")
    return out


class ReminderOut(BaseModel):
  id: str
  taskId: str
  recipientId: str
  fireAt: datetime
  channel: str
  kind: str
  sent: bool
  sentAt: datetime | None = None
  escalatedFromId: str | None = None
  createdAt: datetime


class GenerationOut(BaseModel):
  ok: bool = True
  message: str
  reminders: list[ReminderOut]


class ReminderStatsOut(BaseModel):
  total: int
  pending: int
  sent: int
  overdue: int


class BatchResultOut(BaseModel):
  processed: int
  sent: int
  failed: int
  errors: list[dict[str, Any]]


class EscalationScanOut(BaseModel):
  scanned: int
  escalated: int
  escalationsCreated: int
  errors: list[dict[str, Any]]


class DeletedOut(BaseModel):
  ok: bool = True
  deletedIds: list[str]
