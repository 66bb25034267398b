from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./pm_api_test.db")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

import pytest
from httpx import ASGITransport, AsyncClient

from pm_api.config import settings
from pm_api.db import SessionLocal, engine
from pm_api.main import app
from pm_api.models import Base, DeadlineReminder, NotificationPreference, Project, Task, User
from pm_api.notifications.service import EmailMessage

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
async def db_schema() -> None:
  if not settings.is_test_db():
    raise RuntimeError(
      "Refusing to run destructive tests against non-test DB. "
      "Set DATABASE_URL to a *_test database (e.g. pm_api_test)."
    )
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.drop_all)
    await conn.run_sync(Base.metadata.create_all)
  yield
  await engine.dispose()


@pytest.fixture
async def db(db_schema):
  async with SessionLocal() as session:
    yield session


@pytest.fixture
async def client(db_schema) -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


class RecordingTransport:
  def __init__(self) -> None:
    self.sent: list[EmailMessage] = []
    self.fail_for: set[str] = set()

  async def send_email(self, msg: EmailMessage) -> dict:
    if msg.to in self.fail_for:
      raise ConnectionError(f"smtp refused {msg.to}")
    self.sent.append(msg)
    return {"provider": "test", "status": "sent", "detail": {"to": msg.to}}


@pytest.fixture
def transport() -> RecordingTransport:
  return RecordingTransport()


@dataclass
class Seed:
  member: User
  manager: User
  project: Project
  extra: dict = field(default_factory=dict)

  async def task(self, *, deadline: datetime | None, status: str = "TODO", title: str = "Write report", project_id: str | None = None) -> Task:
    async with SessionLocal() as s:
      t = Task(project_id=project_id or self.project.id, title=title, deadline=deadline, status=status)
      s.add(t)
      await s.commit()
      return t

  async def reminder(
    self,
    *,
    task_id: str,
    fire_at: datetime,
    recipient_id: str | None = None,
    channel: str = "email",
    sent: bool = False,
  ) -> DeadlineReminder:
    async with SessionLocal() as s:
      r = DeadlineReminder(
        task_id=task_id,
        recipient_id=recipient_id or self.member.id,
        fire_at=fire_at,
        channel=channel,
        sent=sent,
        created_at=NOW,
      )
      s.add(r)
      await s.commit()
      return r

  async def preferences(self, user_id: str, *, deadline_reminders: bool = True, email_notifications: bool = True) -> None:
    async with SessionLocal() as s:
      s.add(NotificationPreference(user_id=user_id, deadline_reminders=deadline_reminders, email_notifications=email_notifications))
      await s.commit()

  async def user(self, *, email: str, name: str, role: str = "member") -> User:
    async with SessionLocal() as s:
      u = User(email=email, name=name, role=role)
      s.add(u)
      await s.commit()
      return u

  def headers(self, user: User) -> dict[str, str]:
    return {"X-User-Id": user.id}


@pytest.fixture
async def seed(db_schema) -> Seed:
  async with SessionLocal() as s:
    member = User(email="member@pm.local", name="Member", role="member")
    manager = User(email="manager@pm.local", name="Manager", role="manager")
    s.add_all([member, manager])
    await s.flush()
    project = Project(name="Apollo", manager_id=manager.id)
    s.add(project)
    await s.commit()
  return Seed(member=member, manager=manager, project=project)
