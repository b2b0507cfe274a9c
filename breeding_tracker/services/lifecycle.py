"""Record lifecycle: INITIAL → IN_PROGRESS → FINALIZED.

FINALIZED is terminal. INITIAL → FINALIZED is accepted because historical
callers skip the intermediate stage. Re-requesting the current status is a
no-op so retried client calls succeed.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any

from breeding_tracker.entities.record import Record, RecordStatus
from breeding_tracker.errors import (
    InvalidDateRangeError, InvalidTransitionError, MissingOutcomeDateError,
)

logger = logging.getLogger(__name__)

LEGAL_TRANSITIONS: frozenset[tuple[RecordStatus, RecordStatus]] = frozenset({
    (RecordStatus.INITIAL, RecordStatus.IN_PROGRESS),
    (RecordStatus.IN_PROGRESS, RecordStatus.FINALIZED),
    (RecordStatus.INITIAL, RecordStatus.FINALIZED),
})


def can_transition(current: RecordStatus, target: RecordStatus) -> bool:
    if current == target:
        return True
    return (current, target) in LEGAL_TRANSITIONS


def transition(
    record: Record,
    target_status: RecordStatus | str,
    real_outcome_date: date | None = None,
) -> Record:
    """Move ``record`` to ``target_status`` in place and return it.

    Raises InvalidTransitionError, MissingOutcomeDateError or
    InvalidDateRangeError; the record is left untouched on failure.
    """
    target = RecordStatus.parse(target_status)
    current = record.status

    if current == target:
        logger.debug("record %s already %s, nothing to do", record.id, target)
        return record

    if current == RecordStatus.FINALIZED:
        raise InvalidTransitionError(f"record {record.id} is FINALIZED and cannot move to {target}")

    if (current, target) not in LEGAL_TRANSITIONS:
        raise InvalidTransitionError(f"record {record.id} cannot move from {current} to {target}")

    if target == RecordStatus.FINALIZED:
        if real_outcome_date is None:
            raise MissingOutcomeDateError(f"record {record.id} needs a real outcome date to be finalized")
        if record.start_date is not None and real_outcome_date < record.start_date:
            raise InvalidDateRangeError(
                f"outcome date {real_outcome_date.isoformat()} precedes start date "
                f"{record.start_date.isoformat()} for record {record.id}"
            )
        record.outcome_date = real_outcome_date

    record.status = target
    logger.info("record %s: %s → %s", record.id, current, target)
    return record


def progress_percent(status: RecordStatus | Any) -> int:
    """Display helper: 0 / 50 / 100."""
    return RecordStatus.parse(status).progress_percent
