"""Per-record dismissal, favorite and archive bookkeeping for reminders."""
from __future__ import annotations

import logging
from typing import Iterable

from breeding_tracker.entities.record import Record
from breeding_tracker.entities.reminder import AcknowledgmentEntry

logger = logging.getLogger(__name__)


class AcknowledgmentTracker:
    """Decides which unresolved records stay out of the alert set.

    A dismissal suppresses its record while the remote mark-as-read is in
    flight. Once settled, the first listing fetched after settlement is the
    authority: a record the server still reports as unresolved and unread
    comes back, one it no longer reports is forgotten. Archived records stay
    out until unarchived or no longer reported.
    """

    def __init__(self) -> None:
        self._entries: dict[int, AcknowledgmentEntry] = {}
        self._favorites: set[int] = set()
        self._archived: set[int] = set()

    # ── acknowledgments ──

    def acknowledge(self, record_id: int, at: float) -> AcknowledgmentEntry:
        entry = AcknowledgmentEntry(record_id=record_id, acknowledged_at=at)
        self._entries[record_id] = entry
        return entry

    def settle(self, record_id: int, ok: bool, at: float) -> None:
        """Record the outcome of the remote mark-as-read."""
        entry = self._entries.get(record_id)
        if entry is not None:
            entry.confirmed = ok
            entry.settled_at = at

    def get(self, record_id: int) -> AcknowledgmentEntry | None:
        return self._entries.get(record_id)

    def is_suppressed(self, record_id: int, as_of: float | None = None) -> bool:
        """Whether a listing fetched at ``as_of`` must not show the record.

        A listing fetched before the mark-as-read settled may be stale, so the
        dismissal still applies to it.
        """
        if record_id in self._archived:
            return True
        entry = self._entries.get(record_id)
        return entry is not None and _still_applies(entry, as_of)

    def clear(self, record_id: int) -> None:
        """Forget the record's dismissal (finalized, or re-opened by the user)."""
        self._entries.pop(record_id, None)

    def finalize(self, record_id: int) -> None:
        self._entries.pop(record_id, None)
        self._archived.discard(record_id)

    def reconcile(self, unresolved_ids: Iterable[int], as_of: float) -> None:
        """Drop the entries a listing fetched at ``as_of`` is authoritative for."""
        reported = set(unresolved_ids)
        for record_id, entry in list(self._entries.items()):
            if _still_applies(entry, as_of):
                continue
            if record_id in reported and entry.confirmed:
                logger.info("record %s reported unread again after acknowledgment", record_id)
            del self._entries[record_id]

        self._archived.intersection_update(reported)

    def filter(self, records: Iterable[Record], as_of: float | None = None) -> list[Record]:
        return [r for r in records if not self.is_suppressed(r.id, as_of)]

    # ── favorites / archive ──

    def toggle_favorite(self, record_id: int) -> bool:
        if record_id in self._favorites:
            self._favorites.discard(record_id)
            return False
        self._favorites.add(record_id)
        return True

    def is_favorite(self, record_id: int) -> bool:
        return record_id in self._favorites

    def archive(self, record_id: int) -> None:
        self._archived.add(record_id)

    def unarchive(self, record_id: int) -> None:
        self._archived.discard(record_id)

    def is_archived(self, record_id: int) -> bool:
        return record_id in self._archived

    def reset(self) -> None:
        self._entries.clear()
        self._favorites.clear()
        self._archived.clear()


def _still_applies(entry: AcknowledgmentEntry, as_of: float | None) -> bool:
    if entry.pending:
        return True
    return as_of is not None and entry.settled_at is not None and entry.settled_at > as_of
