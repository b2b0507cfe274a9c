from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import Protocol, Sequence

from breeding_tracker.entities.record import Record
from breeding_tracker.entities.reminder import Reminder


class NotificationSurface(ABC):
    """Display sink for reminders."""

    @abstractmethod
    def show(self, reminders: Sequence[Reminder]) -> None:
        raise NotImplementedError

    @abstractmethod
    def hide(self) -> None:
        raise NotImplementedError


class OutcomeDatePrompt(Protocol):
    """Date-entry step used before a record is finalized from a reminder."""

    async def request_outcome_date(self, record: Record) -> date | None:
        """Return the date the user entered, or None if they cancelled."""
        ...


class LoggingSurface(NotificationSurface):
    """Headless surface: writes reminders to the log."""

    def __init__(self, logger: logging.Logger | None = None, preview: int = 3):
        self.logger = logger or logging.getLogger(__name__)
        self.preview = preview

    def show(self, reminders: Sequence[Reminder]) -> None:
        codes = ", ".join(r.code for r in reminders[: self.preview])
        more = len(reminders) - self.preview
        suffix = f" (+{more} more)" if more > 0 else ""
        self.logger.info("%d pending reminder(s): %s%s", len(reminders), codes, suffix)

    def hide(self) -> None:
        self.logger.info("reminders hidden")
