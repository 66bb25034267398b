from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "postgresql+asyncpg://pm:pm@db:5432/pm"
  app_version: str = "v2026-10-17"
  build_sha: str = "dev"
  log_level: str = "INFO"
  api_docs_enabled: bool = True

  smtp_host: str | None = None
  smtp_port: int = 465
  smtp_username: str | None = None
  smtp_password: str | None = None
  smtp_from: str | None = None
  smtp_use_ssl: bool = True

  reminder_dispatch_enabled: bool = True
  reminder_dispatch_interval_seconds: int = 20
  reminder_batch_size: int = 50
  reminder_escalation_enabled: bool = True
  reminder_escalation_interval_seconds: int = 3600
  escalation_days: str = "1,3,7"

  def escalation_day_list(self) -> list[int]:
    out: list[int] = []
    for part in self.escalation_days.split(","):
      s = part.strip()
      if s.isdigit() and int(s) > 0:
        out.append(int(s))
    return out or [1, 3, 7]

  def is_test_db(self) -> bool:
    return "test" in self.database_url.rsplit("/", 1)[-1]


settings = Settings()
