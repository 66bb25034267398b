from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pm_api.models import Project, Task, User

COMPLETED = "COMPLETED"


@dataclass(frozen=True)
class TaskInfo:
  id: str
  title: str
  description: str
  deadline: datetime | None
  status: str
  project_id: str
  project_name: str | None = None

  @property
  def completed(self) -> bool:
    return self.status == COMPLETED


async def get_task(db: AsyncSession, task_id: str) -> TaskInfo | None:
  res = await db.execute(
    select(Task, Project.name).join(Project, Project.id == Task.project_id, isouter=True).where(Task.id == task_id)
  )
  row = res.first()
  if row is None:
    return None
  t, project_name = row
  return TaskInfo(
    id=t.id,
    title=t.title,
    description=t.description or "",
    deadline=t.deadline,
    status=t.status,
    project_id=t.project_id,
    project_name=project_name,
  )


async def get_project_manager(db: AsyncSession, project_id: str | None) -> str | None:
  if not project_id:
    return None
  res = await db.execute(select(Project.manager_id).where(Project.id == project_id))
  return res.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: str) -> User | None:
  res = await db.execute(select(User).where(User.id == user_id))
  return res.scalar_one_or_none()
