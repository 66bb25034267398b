from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text, TypeDecorator
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
  return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
  if dt.tzinfo is None:
    return dt.replace(tzinfo=timezone.utc)
  return dt.astimezone(timezone.utc)


class UtcDateTime(TypeDecorator):
  """Timezone-aware UTC timestamps on every backend (SQLite drops tzinfo on the way back)."""

  impl = DateTime(timezone=True)
  cache_ok = True

  def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
    if value is None:
      return None
    return as_utc(value)

  def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
    if value is None:
      return None
    return as_utc(value)


def _uuid() -> str:
  return str(uuid.uuid4())


class Base(DeclarativeBase):
  pass


class User(Base):
  __tablename__ = "users"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  email: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  role: Mapped[str] = mapped_column(String, nullable=False, default="member")  # member | manager | admin
  active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
  created_at: Mapped[datetime] = mapped_column(UtcDateTime, default=utcnow, nullable=False)


class Project(Base):
  __tablename__ = "projects"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  name: Mapped[str] = mapped_column(String, nullable=False)
  manager_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)
  created_at: Mapped[datetime] = mapped_column(UtcDateTime, default=utcnow, nullable=False)


class Task(Base):
  __tablename__ = "tasks"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  project_id: Mapped[str] = mapped_column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
  title: Mapped[str] = mapped_column(String, nullable=False)
  description: Mapped[str] = mapped_column(Text, nullable=False, default="")
  deadline: Mapped[datetime | None] = mapped_column(UtcDateTime, nullable=True)
  status: Mapped[str] = mapped_column(String, nullable=False, default="TODO")  # TODO | IN_PROGRESS | REVIEW | COMPLETED
  created_at: Mapped[datetime] = mapped_column(UtcDateTime, default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(UtcDateTime, default=utcnow, onupdate=utcnow, nullable=False)


class NotificationPreference(Base):
  __tablename__ = "notification_preferences"

  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), primary_key=True)
  deadline_reminders: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
  email_notifications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
  updated_at: Mapped[datetime] = mapped_column(UtcDateTime, default=utcnow, onupdate=utcnow, nullable=False)


class InAppNotification(Base):
  __tablename__ = "in_app_notifications"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  title: Mapped[str] = mapped_column(String, nullable=False)
  body: Mapped[str] = mapped_column(Text, nullable=False)
  event_type: Mapped[str | None] = mapped_column(String, nullable=True)
  entity_type: Mapped[str | None] = mapped_column(String, nullable=True)
  entity_id: Mapped[str | None] = mapped_column(String, nullable=True)
  read_at: Mapped[datetime | None] = mapped_column(UtcDateTime, nullable=True)
  created_at: Mapped[datetime] = mapped_column(UtcDateTime, default=utcnow, nullable=False)


class AuditEvent(Base):
  __tablename__ = "audit_events"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  task_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
  actor_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
  event_type: Mapped[str] = mapped_column(String, nullable=False)
  entity_type: Mapped[str] = mapped_column(String, nullable=False)
  entity_id: Mapped[str | None] = mapped_column(String, nullable=True)
  payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
  created_at: Mapped[datetime] = mapped_column(UtcDateTime, default=utcnow, nullable=False)


class DeadlineReminder(Base):
  __tablename__ = "deadline_reminders"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  task_id: Mapped[str] = mapped_column(String(36), ForeignKey("tasks.id"), nullable=False, index=True)
  recipient_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  fire_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False, index=True)
  channel: Mapped[str] = mapped_column(String, nullable=False, default="email")  # email | inapp | both
  kind: Mapped[str] = mapped_column(String, nullable=False, default="manual")  # manual | standard | custom | escalation
  sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
  sent_at: Mapped[datetime | None] = mapped_column(UtcDateTime, nullable=True)
  escalated_from_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
  created_at: Mapped[datetime] = mapped_column(UtcDateTime, default=utcnow, nullable=False)
