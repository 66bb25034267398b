from __future__ import annotations


class ReminderError(Exception):
  status_code = 500

  def __init__(self, message: str, *, details: dict | None = None) -> None:
    super().__init__(message)
    self.message = message
    self.details = details or {}


class PreconditionFailed(ReminderError):
  """The task cannot carry deadline reminders (no deadline set)."""

  status_code = 412


class NotFound(ReminderError):
  status_code = 404


class InvalidSchedule(ReminderError):
  """A reminder instant is not strictly in the future."""

  status_code = 400


class TransientDeliveryFailure(ReminderError):
  """Email or in-app sink failed for one reminder. Recorded, never retried here."""

  status_code = 502


class StoreFailure(ReminderError):
  status_code = 503
