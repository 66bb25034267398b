from __future__ import annotations

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pm_api.db import SessionLocal
from pm_api.models import User


async def get_db() -> AsyncSession:
  async with SessionLocal() as session:
    yield session


async def get_current_user(
  db: AsyncSession = Depends(get_db),
  user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> User:
  # Identity is asserted by the upstream gateway; this service only resolves it.
  if not user_id:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
  res = await db.execute(select(User).where(User.id == user_id))
  u = res.scalar_one_or_none()
  if not u:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
  if not bool(getattr(u, "active", True)):
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User disabled")
  return u


async def require_manager(user: User = Depends(get_current_user)) -> User:
  if user.role not in ("manager", "admin"):
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
  return user
