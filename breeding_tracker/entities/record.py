from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import StrEnum
from typing import Any

from breeding_tracker.errors import UnknownStatusError


class RecordKind(StrEnum):
    POLLINATION = "pollination"
    GERMINATION = "germination"


class RecordStatus(StrEnum):
    INITIAL = "INITIAL"
    IN_PROGRESS = "IN_PROGRESS"
    FINALIZED = "FINALIZED"

    @classmethod
    def parse(cls, value: Any) -> "RecordStatus":
        """Translate a canonical or historical status value.

        The API has used several vocabularies over time (``INGRESADO`` and
        ``INICIAL`` for the entry stage, ``LISTA`` and ``FINALIZADO`` for the
        terminal one). This is the only place they are mapped.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise UnknownStatusError(f"unrecognized record status: {value!r}")

        key = value.strip().upper()
        try:
            return cls(key)
        except ValueError:
            pass

        status = _LEGACY_STATUSES.get(key)
        if status is None:
            raise UnknownStatusError(f"unrecognized record status: {value!r}")
        return status

    @property
    def progress_percent(self) -> int:
        return _PROGRESS[self]


_LEGACY_STATUSES: dict[str, RecordStatus] = {
    "INICIAL": RecordStatus.INITIAL,
    "INGRESADO": RecordStatus.INITIAL,
    "PENDIENTE": RecordStatus.INITIAL,
    "EN_PROCESO": RecordStatus.IN_PROGRESS,
    "EN PROCESO": RecordStatus.IN_PROGRESS,
    "EN_PROCESO_TEMPRANO": RecordStatus.IN_PROGRESS,
    "EN_PROCESO_AVANZADO": RecordStatus.IN_PROGRESS,
    "FINALIZADO": RecordStatus.FINALIZED,
    "LISTA": RecordStatus.FINALIZED,
    "LISTO": RecordStatus.FINALIZED,
    "COMPLETADO": RecordStatus.FINALIZED,
}

_PROGRESS: dict[RecordStatus, int] = {
    RecordStatus.INITIAL: 0,
    RecordStatus.IN_PROGRESS: 50,
    RecordStatus.FINALIZED: 100,
}


def normalize_status(value: Any) -> RecordStatus:
    return RecordStatus.parse(value)


class ValidationStatus(StrEnum):
    UNVALIDATED = "UNVALIDATED"
    VALIDATED = "VALIDATED"


class QualityLabel(StrEnum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    ACCEPTABLE = "Acceptable"
    POOR = "Poor"


@dataclass
class Prediction:
    """Estimate of when a record completes, as returned by the estimation service."""
    outcome_date: date | None = None
    duration_days: int | None = None
    confidence: float | None = None
    method: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if self.confidence is not None and not 0.0 <= self.confidence <= 100.0:
            raise ValueError(f"prediction confidence must be within [0, 100], got {self.confidence}")
        if self.duration_days is not None and self.duration_days < 0:
            raise ValueError(f"prediction duration must not be negative, got {self.duration_days}")


@dataclass
class Record:
    """One pollination or germination attempt.

    ``status``/``outcome_date`` are written by the lifecycle state machine only;
    ``validation_status``/``accuracy_percent``/``quality_label`` by the
    validation calculator only. ``metadata`` carries free-form details such as
    location and responsible person.
    """
    id: int
    kind: RecordKind = RecordKind.POLLINATION
    code: str = ""
    species: str | None = None
    genus: str | None = None
    start_date: date | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    status: RecordStatus = RecordStatus.INITIAL
    outcome_date: date | None = None

    predicted_outcome_date: date | None = None
    predicted_duration_days: int | None = None
    prediction_confidence: float | None = None
    prediction_method: str | None = None

    validation_status: ValidationStatus = ValidationStatus.UNVALIDATED
    accuracy_percent: float | None = None
    quality_label: QualityLabel | None = None

    @property
    def prediction(self) -> Prediction | None:
        if self.predicted_outcome_date is None and self.predicted_duration_days is None:
            return None
        return Prediction(
            outcome_date=self.predicted_outcome_date,
            duration_days=self.predicted_duration_days,
            confidence=self.prediction_confidence,
            method=self.prediction_method,
        )

    @property
    def is_resolved(self) -> bool:
        return self.status == RecordStatus.FINALIZED

    @property
    def is_validated(self) -> bool:
        return self.validation_status == ValidationStatus.VALIDATED


@dataclass(frozen=True)
class ValidationResult:
    """Comparison of a record's prediction against its real outcome date."""
    predicted_days: int
    real_days: int
    difference_days: int
    accuracy_percent: float
    quality_label: QualityLabel
    needs_verification: bool = False
    predicted_outcome_date: date | None = None
    real_outcome_date: date | None = None

    @property
    def deviation_percent(self) -> float:
        """Signed relative deviation of the real duration from the predicted one."""
        if self.predicted_days == 0:
            return 0.0 if self.real_days == 0 else 100.0
        return (self.real_days - self.predicted_days) / self.predicted_days * 100.0
