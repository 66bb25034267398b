from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage as MimeMessage
from typing import Any, Protocol

from pm_api.config import Settings

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
  to: str
  subject: str
  body: str


class EmailTransport(Protocol):
  async def send_email(self, msg: EmailMessage) -> dict[str, Any]: ...


class LocalEmailTransport:
  """Used when no SMTP host is configured; records the message in the log only."""

  async def send_email(self, msg: EmailMessage) -> dict[str, Any]:
    log.info("local email to=%s subject=%r", msg.to, msg.subject)
    return {"provider": "local", "status": "sent", "detail": {"to": msg.to, "subject": msg.subject}}


class SmtpEmailTransport:
  def __init__(
    self,
    *,
    host: str,
    port: int = 465,
    username: str | None = None,
    password: str | None = None,
    from_addr: str | None = None,
    use_ssl: bool = True,
    timeout: float = 10,
  ) -> None:
    self.host = host
    self.port = port
    self.username = (username or "").strip()
    self.password = (password or "").strip()
    self.from_addr = (from_addr or "").strip() or f"Project Management System <{self.username}>"
    self.use_ssl = use_ssl
    self.timeout = timeout

  async def send_email(self, msg: EmailMessage) -> dict[str, Any]:
    if not msg.to:
      raise ValueError("Email recipient missing")

    def _send_sync() -> None:
      m = MimeMessage()
      m["Subject"] = msg.subject
      m["From"] = self.from_addr
      m["To"] = msg.to
      m.set_content(msg.body)
      smtp_cls = smtplib.SMTP_SSL if self.use_ssl else smtplib.SMTP
      with smtp_cls(host=self.host, port=self.port, timeout=self.timeout) as s:
        s.ehlo()
        if not self.use_ssl:
          s.starttls()
          s.ehlo()
        if self.username and self.password:
          s.login(self.username, self.password)
        s.send_message(m)

    await asyncio.to_thread(_send_sync)
    return {"provider": "smtp", "status": "sent", "detail": {"to": msg.to, "host": self.host, "port": self.port}}


def email_transport_for(cfg: Settings) -> EmailTransport:
  host = (cfg.smtp_host or "").strip()
  if not host:
    return LocalEmailTransport()
  return SmtpEmailTransport(
    host=host,
    port=int(cfg.smtp_port),
    username=cfg.smtp_username,
    password=cfg.smtp_password,
    from_addr=cfg.smtp_from,
    use_ssl=bool(cfg.smtp_use_ssl),
  )
