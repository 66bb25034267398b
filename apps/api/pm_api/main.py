from __future__ import annotations

import asyncio
import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from pm_api.config import settings
from pm_api.db import SessionLocal
from pm_api.logging_config import setup_logging
from pm_api.reminders.errors import ReminderError
from pm_api.reminders.escalation import scan_and_escalate
from pm_api.reminders.service import process_batch
from pm_api.routers.reminders import router as reminders_router

log = logging.getLogger(__name__)

app = FastAPI(
  title="Project Management Reminders API",
  version="0.1.0",
  docs_url="/docs" if settings.api_docs_enabled else None,
  redoc_url="/redoc" if settings.api_docs_enabled else None,
  openapi_url="/openapi.json" if settings.api_docs_enabled else None,
)


@app.exception_handler(ReminderError)
async def _reminder_error_handler(_, exc: ReminderError) -> JSONResponse:
  content: dict = {"detail": exc.message}
  if exc.details:
    content["context"] = exc.details
  return JSONResponse(status_code=exc.status_code, content=content)


app.include_router(reminders_router)


@app.get("/health")
async def health() -> dict:
  return {"ok": True}


@app.get("/version")
async def version() -> dict:
  return {"version": settings.app_version, "buildSha": settings.build_sha}


_dispatch_loop_task: asyncio.Task | None = None
_escalation_loop_task: asyncio.Task | None = None


async def _reminder_dispatch_loop() -> None:
  while True:
    await asyncio.sleep(max(5, int(settings.reminder_dispatch_interval_seconds)))
    async with SessionLocal() as db:
      try:
        await process_batch(db, max_batch_size=settings.reminder_batch_size)
      except Exception:
        # Never crash the app due to reminder failures; the next tick retries the query.
        log.exception("reminder dispatch tick failed")


async def _escalation_loop() -> None:
  while True:
    await asyncio.sleep(max(60, int(settings.reminder_escalation_interval_seconds)))
    async with SessionLocal() as db:
      try:
        await scan_and_escalate(db, escalation_days=settings.escalation_day_list())
      except Exception:
        log.exception("escalation scan tick failed")


@app.on_event("startup")
async def _startup() -> None:
  global _dispatch_loop_task, _escalation_loop_task
  setup_logging(settings.log_level)
  if settings.is_test_db():
    return
  if settings.reminder_dispatch_enabled and _dispatch_loop_task is None:
    _dispatch_loop_task = asyncio.create_task(_reminder_dispatch_loop())
  if settings.reminder_escalation_enabled and _escalation_loop_task is None:
    _escalation_loop_task = asyncio.create_task(_escalation_loop())
  log.info("reminder loops started dispatch=%s escalation=%s", _dispatch_loop_task is not None, _escalation_loop_task is not None)
