from __future__ import annotations

from dataclasses import dataclass

from breeding_tracker.entities.record import Record, RecordKind, RecordStatus


@dataclass(frozen=True)
class Reminder:
    """Record ``record_id`` is unresolved as of ``as_of``. Never stored."""
    record_id: int
    kind: RecordKind
    code: str
    status: RecordStatus
    as_of: float

    @classmethod
    def from_record(cls, record: Record, as_of: float) -> "Reminder":
        return cls(
            record_id=record.id,
            kind=record.kind,
            code=record.code or f"{record.kind.value}-{record.id}",
            status=record.status,
            as_of=as_of,
        )


@dataclass
class AcknowledgmentEntry:
    """A user dismissal. ``confirmed`` stays None while the remote mark-as-read is in flight."""
    record_id: int
    acknowledged_at: float
    confirmed: bool | None = None
    settled_at: float | None = None

    @property
    def pending(self) -> bool:
        return self.confirmed is None
