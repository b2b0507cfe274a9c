from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from breeding_tracker.entities.record import (
    Prediction, QualityLabel, Record, RecordKind, RecordStatus, ValidationResult, ValidationStatus,
)


class RecordEnvelope(BaseModel):
    """Record as exchanged with the records API.

    ``status`` accepts every historical vocabulary; unknown fields are kept
    and ignored.
    """

    id: int
    kind: RecordKind = RecordKind.POLLINATION
    code: str = ""
    species: str | None = None
    genus: str | None = None
    start_date: date | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    status: RecordStatus = RecordStatus.INITIAL
    outcome_date: date | None = None

    predicted_outcome_date: date | None = None
    predicted_duration_days: int | None = Field(default=None, ge=0)
    prediction_confidence: float | None = Field(default=None, ge=0, le=100)
    prediction_method: str | None = None

    validation_status: ValidationStatus = ValidationStatus.UNVALIDATED
    accuracy_percent: float | None = Field(default=None, ge=0, le=100)
    quality_label: QualityLabel | None = None

    model_config = ConfigDict(extra="allow")

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value: Any) -> RecordStatus:
        return RecordStatus.parse(value)

    @field_validator("kind", mode="before")
    @classmethod
    def _parse_kind(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("metadata", mode="before")
    @classmethod
    def _default_metadata(cls, value: Any) -> Any:
        return {} if value is None else value

    def to_domain(self) -> Record:
        return Record(
            id=self.id,
            kind=self.kind,
            code=self.code,
            species=self.species,
            genus=self.genus,
            start_date=self.start_date,
            metadata=dict(self.metadata),
            status=self.status,
            outcome_date=self.outcome_date,
            predicted_outcome_date=self.predicted_outcome_date,
            predicted_duration_days=self.predicted_duration_days,
            prediction_confidence=self.prediction_confidence,
            prediction_method=self.prediction_method,
            validation_status=self.validation_status,
            accuracy_percent=self.accuracy_percent,
            quality_label=self.quality_label,
        )

    @classmethod
    def from_domain(cls, record: Record) -> "RecordEnvelope":
        return cls(
            id=record.id,
            kind=record.kind,
            code=record.code,
            species=record.species,
            genus=record.genus,
            start_date=record.start_date,
            metadata=record.metadata,
            status=record.status,
            outcome_date=record.outcome_date,
            predicted_outcome_date=record.predicted_outcome_date,
            predicted_duration_days=record.predicted_duration_days,
            prediction_confidence=record.prediction_confidence,
            prediction_method=record.prediction_method,
            validation_status=record.validation_status,
            accuracy_percent=record.accuracy_percent,
            quality_label=record.quality_label,
        )


class PredictionEnvelope(BaseModel):
    """Estimate returned by the estimation service."""

    outcome_date: date | None = None
    duration_days: int | None = Field(default=None, ge=0)
    confidence: float | None = Field(default=None, ge=0, le=100)
    method: str | None = None

    model_config = ConfigDict(extra="allow")

    def to_domain(self) -> Prediction:
        return Prediction(
            outcome_date=self.outcome_date,
            duration_days=self.duration_days,
            confidence=self.confidence,
            method=self.method,
        )


class ValidationEnvelope(BaseModel):
    """Validation result posted back to the records API."""

    predicted_days: int
    real_days: int = Field(ge=0)
    difference_days: int = Field(ge=0)
    accuracy_percent: float = Field(ge=0, le=100)
    quality_label: QualityLabel
    needs_verification: bool = False
    deviation_percent: float | None = None
    predicted_outcome_date: date | None = None
    real_outcome_date: date | None = None

    model_config = ConfigDict(extra="allow")

    @classmethod
    def from_result(cls, result: ValidationResult) -> "ValidationEnvelope":
        return cls(
            predicted_days=result.predicted_days,
            real_days=result.real_days,
            difference_days=result.difference_days,
            accuracy_percent=result.accuracy_percent,
            quality_label=result.quality_label,
            needs_verification=result.needs_verification,
            deviation_percent=result.deviation_percent,
            predicted_outcome_date=result.predicted_outcome_date,
            real_outcome_date=result.real_outcome_date,
        )
