from __future__ import annotations

import asyncio
import logging

from breeding_tracker.config.runtime import ReminderSettings, RuntimeSettings
from breeding_tracker.db import DBRecordGateway, create_session
from breeding_tracker.http.record_gateway import HttpRecordGateway
from breeding_tracker.interfaces.record_gateway import RecordGateway
from breeding_tracker.interfaces.surface import LoggingSurface
from breeding_tracker.services.reminders import ReminderScheduler


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        force=True,
    )


def build_gateway(runtime_settings: RuntimeSettings) -> RecordGateway:
    if runtime_settings.record_gateway == "db":
        return DBRecordGateway(create_session(runtime_settings.database_url))
    if runtime_settings.record_gateway == "http":
        return HttpRecordGateway.from_settings(runtime_settings)
    raise ValueError(f"unknown RECORD_GATEWAY: {runtime_settings.record_gateway!r} (expected 'http' or 'db')")


def build_service(runtime_settings: RuntimeSettings | None = None) -> ReminderScheduler:
    runtime_settings = runtime_settings or RuntimeSettings.from_env()
    return ReminderScheduler(
        gateway=build_gateway(runtime_settings),
        surface=LoggingSurface(),
        settings=ReminderSettings.from_env(),
    )


async def main() -> None:
    runtime_settings = RuntimeSettings.from_env()
    configure_logging(runtime_settings.log_level)
    logger = logging.getLogger(__name__)
    logger.info("reminder worker bootstrap (gateway=%s)", runtime_settings.record_gateway)

    service = build_service(runtime_settings)
    await service.run()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
