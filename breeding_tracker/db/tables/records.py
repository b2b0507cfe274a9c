"""Breeding record table."""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RecordRow(SQLModel, table=True):
    __tablename__ = "breeding_records"

    id: int = Field(primary_key=True)

    kind: str = Field(index=True)
    code: str = Field(default="")
    species: Optional[str] = Field(default=None)
    genus: Optional[str] = Field(default=None)
    start_date: Optional[date] = Field(default=None)

    status: str = Field(default="INITIAL", index=True)
    outcome_date: Optional[date] = Field(default=None)

    predicted_outcome_date: Optional[date] = Field(default=None)
    predicted_duration_days: Optional[int] = Field(default=None)
    prediction_confidence: Optional[float] = Field(default=None)
    prediction_method: Optional[str] = Field(default=None)

    validation_status: str = Field(default="UNVALIDATED", index=True)
    accuracy_percent: Optional[float] = Field(default=None)
    quality_label: Optional[str] = Field(default=None)
    difference_days: Optional[int] = Field(default=None)
    needs_verification: bool = Field(default=False)
    validated_at: Optional[datetime] = Field(default=None)

    acknowledged: bool = Field(default=False, index=True)
    acknowledged_at: Optional[datetime] = Field(default=None)

    meta_json: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSON),
    )

    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now, index=True)
