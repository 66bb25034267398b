#!/usr/bin/env python3
"""One-shot reminder jobs for an external scheduler (cron, systemd timers, cloud schedulers)."""
from __future__ import annotations

import argparse
import asyncio
import json

from pm_api.config import settings
from pm_api.db import SessionLocal, engine
from pm_api.logging_config import setup_logging
from pm_api.reminders.escalation import scan_and_escalate
from pm_api.reminders.service import process_batch


async def _run(args: argparse.Namespace) -> dict:
  try:
    async with SessionLocal() as db:
      if args.job == "dispatch":
        res = await process_batch(db, max_batch_size=args.batch_size or settings.reminder_batch_size)
      else:
        res = await scan_and_escalate(db, escalation_days=settings.escalation_day_list())
      return res.as_dict()
  finally:
    await engine.dispose()


def main(argv: list[str] | None = None) -> int:
  ap = argparse.ArgumentParser(description="Run one reminder job and print its summary as JSON.")
  ap.add_argument("job", choices=["dispatch", "escalate"])
  ap.add_argument("--batch-size", type=int, default=None, help="max reminders per dispatch run")
  args = ap.parse_args(argv)

  setup_logging(settings.log_level)
  summary = asyncio.run(_run(args))
  print(json.dumps(summary, indent=2, sort_keys=True))
  return 1 if summary.get("failed") else 0


if __name__ == "__main__":
  raise SystemExit(main())
