"""Prediction validation: compare a record's prediction with its real outcome date."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import date

from breeding_tracker.entities.record import (
    QualityLabel, Record, RecordStatus, ValidationResult, ValidationStatus,
)
from breeding_tracker.errors import InvalidDateRangeError, MissingPredictionError
from breeding_tracker.interfaces.record_gateway import RecordGateway
from breeding_tracker.services.lifecycle import transition


@dataclass(frozen=True)
class QualityThresholds:
    """Maximum day difference per label, checked in order.

    Defaults are calibrated to germination/pollination cycles measured in weeks.
    ``verify_after_days`` only raises ``needs_verification``; it never changes the label.
    """
    excellent_max_days: int = 2
    good_max_days: int = 5
    acceptable_max_days: int = 10
    verify_after_days: int = 10

    def __post_init__(self) -> None:
        if not 0 <= self.excellent_max_days <= self.good_max_days <= self.acceptable_max_days:
            raise ValueError(
                "quality thresholds must be non-negative and non-decreasing: "
                f"{self.excellent_max_days}, {self.good_max_days}, {self.acceptable_max_days}"
            )

    @classmethod
    def from_env(cls) -> "QualityThresholds":
        return cls(
            excellent_max_days=int(os.getenv("QUALITY_EXCELLENT_MAX_DAYS", "2")),
            good_max_days=int(os.getenv("QUALITY_GOOD_MAX_DAYS", "5")),
            acceptable_max_days=int(os.getenv("QUALITY_ACCEPTABLE_MAX_DAYS", "10")),
            verify_after_days=int(os.getenv("VERIFY_AFTER_DAYS", "10")),
        )

    def classify(self, difference_days: int) -> QualityLabel:
        if difference_days <= self.excellent_max_days:
            return QualityLabel.EXCELLENT
        if difference_days <= self.good_max_days:
            return QualityLabel.GOOD
        if difference_days <= self.acceptable_max_days:
            return QualityLabel.ACCEPTABLE
        return QualityLabel.POOR


DEFAULT_THRESHOLDS = QualityThresholds()


def accuracy_percent(difference_days: int, real_days: int) -> float:
    """Relative-error score, clamped to [0, 100]."""
    score = 100.0 - (difference_days / max(real_days, 1)) * 100.0
    return min(100.0, max(0.0, score))


def compute_validation(
    record: Record,
    real_outcome_date: date,
    thresholds: QualityThresholds = DEFAULT_THRESHOLDS,
) -> ValidationResult:
    """Pure part of ``validate``: no field of ``record`` is written."""
    start = record.start_date
    if start is None or (record.predicted_outcome_date is None and record.predicted_duration_days is None):
        raise MissingPredictionError(f"record {record.id} has no start date or prediction to validate")

    if real_outcome_date < start:
        raise InvalidDateRangeError(
            f"real outcome date {real_outcome_date.isoformat()} precedes start date {start.isoformat()}"
        )
    if (
        record.status == RecordStatus.FINALIZED
        and record.outcome_date is not None
        and real_outcome_date != record.outcome_date
    ):
        raise InvalidDateRangeError(
            f"record {record.id} was finalized on {record.outcome_date.isoformat()}, "
            f"not {real_outcome_date.isoformat()}"
        )

    real_days = (real_outcome_date - start).days
    if record.predicted_duration_days is not None:
        predicted_days = record.predicted_duration_days
    else:
        predicted_days = (record.predicted_outcome_date - start).days

    difference_days = abs(real_days - predicted_days)

    return ValidationResult(
        predicted_days=predicted_days,
        real_days=real_days,
        difference_days=difference_days,
        accuracy_percent=accuracy_percent(difference_days, real_days),
        quality_label=thresholds.classify(difference_days),
        needs_verification=difference_days > thresholds.verify_after_days,
        predicted_outcome_date=record.predicted_outcome_date,
        real_outcome_date=real_outcome_date,
    )


def validate(
    record: Record,
    real_outcome_date: date,
    thresholds: QualityThresholds = DEFAULT_THRESHOLDS,
) -> ValidationResult:
    """Validate ``record``'s prediction, finalizing the record if needed.

    Validation implies completion, so an unfinished record is moved to
    FINALIZED with ``real_outcome_date`` before the result is written back.
    A record already finalized only validates against its own outcome date.
    """
    result = compute_validation(record, real_outcome_date, thresholds)

    if record.status != RecordStatus.FINALIZED:
        transition(record, RecordStatus.FINALIZED, real_outcome_date)

    record.accuracy_percent = result.accuracy_percent
    record.quality_label = result.quality_label
    record.validation_status = ValidationStatus.VALIDATED
    return result


class ValidationService:
    """Loads a record, validates it and persists both the transition and the result."""

    def __init__(self, gateway: RecordGateway, thresholds: QualityThresholds | None = None):
        self.gateway = gateway
        self.thresholds = thresholds or DEFAULT_THRESHOLDS
        self.logger = logging.getLogger(__name__)

    async def validate_record(self, record_id: int, real_outcome_date: date) -> ValidationResult:
        record = await self.gateway.get_record(record_id)
        was_finalized = record.status == RecordStatus.FINALIZED

        result = validate(record, real_outcome_date, self.thresholds)

        if not was_finalized:
            await self.gateway.apply_transition(record.id, record.status, record.outcome_date)
        await self.gateway.record_validation(record.id, result)

        self.logger.info(
            "validated record %s: %d days off, accuracy=%.1f%% (%s)",
            record.id, result.difference_days, result.accuracy_percent, result.quality_label,
        )
        if result.needs_verification:
            self.logger.warning(
                "record %s differs from its prediction by %d days, the real date may need verification",
                record.id, result.difference_days,
            )
        return result
