from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date

from breeding_tracker.entities.record import Record, RecordStatus, ValidationResult


class RecordGateway(ABC):
    """Async persistence/query collaborator. Every method may raise TransportError."""

    # ── query ──

    @abstractmethod
    async def list_unresolved(self) -> list[Record]:
        """Records that are not FINALIZED and whose reminder is still unread."""
        raise NotImplementedError

    @abstractmethod
    async def get_record(self, record_id: int) -> Record:
        raise NotImplementedError

    # ── write ──

    @abstractmethod
    async def apply_transition(
        self, record_id: int, status: RecordStatus, outcome_date: date | None = None,
    ) -> Record:
        raise NotImplementedError

    @abstractmethod
    async def mark_acknowledged(self, record_id: int) -> None:
        raise NotImplementedError

    @abstractmethod
    async def mark_unacknowledged(self, record_id: int) -> None:
        raise NotImplementedError

    @abstractmethod
    async def record_validation(self, record_id: int, result: ValidationResult) -> Record:
        raise NotImplementedError
