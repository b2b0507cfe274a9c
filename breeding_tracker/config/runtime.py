from __future__ import annotations

from dataclasses import dataclass
import os


@dataclass(frozen=True)
class ReminderSettings:
    refresh_interval_seconds: float = 15.0
    reopen_check_interval_seconds: float = 60.0
    reopen_after_seconds: float = 3600.0
    first_surface_delay_seconds: float = 1.2

    @classmethod
    def from_env(cls) -> "ReminderSettings":
        return cls(
            refresh_interval_seconds=float(os.getenv("REMINDER_REFRESH_INTERVAL_SECONDS", "15")),
            reopen_check_interval_seconds=float(os.getenv("REMINDER_REOPEN_CHECK_INTERVAL_SECONDS", "60")),
            reopen_after_seconds=float(os.getenv("REMINDER_REOPEN_AFTER_SECONDS", "3600")),
            first_surface_delay_seconds=float(os.getenv("REMINDER_FIRST_SURFACE_DELAY_SECONDS", "1.2")),
        )


@dataclass(frozen=True)
class RuntimeSettings:
    api_base_url: str
    api_token: str
    api_timeout_seconds: float
    record_gateway: str
    database_url: str
    log_level: str

    @classmethod
    def from_env(cls) -> "RuntimeSettings":
        base_url = os.getenv("API_BASE_URL", "http://localhost:8000/api/")
        if not base_url.endswith("/"):
            base_url += "/"
        return cls(
            api_base_url=base_url,
            api_token=os.getenv("API_TOKEN", ""),
            api_timeout_seconds=float(os.getenv("API_TIMEOUT_SECONDS", "30")),
            record_gateway=os.getenv("RECORD_GATEWAY", "http").strip().lower(),
            database_url=os.getenv("DATABASE_URL", "sqlite:///breeding_tracker.db"),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
        )
