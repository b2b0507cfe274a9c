from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from breeding_tracker.db.tables import RecordRow
from breeding_tracker.entities.record import (
    QualityLabel, Record, RecordKind, RecordStatus, ValidationResult, ValidationStatus,
)
from breeding_tracker.errors import TransportError
from breeding_tracker.interfaces.record_gateway import RecordGateway

logger = logging.getLogger(__name__)


class DBRecordGateway(RecordGateway):
    """RecordGateway over the local records table."""

    def __init__(self, session: Session):
        self._session = session

    # ── query ──

    async def list_unresolved(self) -> list[Record]:
        with self._guard("list unresolved records"):
            rows = self._session.exec(
                select(RecordRow)
                .where(RecordRow.status != RecordStatus.FINALIZED.value)
                .where(RecordRow.acknowledged == False)  # noqa: E712
                .order_by(RecordRow.id)
            ).all()
            return [self._row_to_domain(row) for row in rows]

    async def get_record(self, record_id: int) -> Record:
        with self._guard(f"load record {record_id}"):
            return self._row_to_domain(self._get_row(record_id))

    def fetch_all(self) -> list[Record]:
        with self._guard("list records"):
            rows = self._session.exec(select(RecordRow).order_by(RecordRow.id)).all()
            return [self._row_to_domain(row) for row in rows]

    # ── write ──

    def save(self, record: Record) -> None:
        with self._guard(f"save record {record.id}"):
            existing = self._session.get(RecordRow, record.id)
            row = self._domain_to_row(record)

            if existing is None:
                self._session.add(row)
            else:
                for name in _RECORD_COLUMNS:
                    setattr(existing, name, getattr(row, name))
                existing.updated_at = datetime.now(timezone.utc)

            self._session.commit()

    async def apply_transition(
        self, record_id: int, status: RecordStatus, outcome_date: date | None = None,
    ) -> Record:
        with self._guard(f"move record {record_id} to {status}"):
            row = self._get_row(record_id)
            row.status = RecordStatus.parse(status).value
            if outcome_date is not None:
                row.outcome_date = outcome_date
            row.updated_at = datetime.now(timezone.utc)
            self._session.add(row)
            self._session.commit()
            self._session.refresh(row)
            return self._row_to_domain(row)

    async def mark_acknowledged(self, record_id: int) -> None:
        await self._set_acknowledged(record_id, True)

    async def mark_unacknowledged(self, record_id: int) -> None:
        await self._set_acknowledged(record_id, False)

    async def record_validation(self, record_id: int, result: ValidationResult) -> Record:
        with self._guard(f"store validation of record {record_id}"):
            row = self._get_row(record_id)
            now = datetime.now(timezone.utc)
            row.validation_status = ValidationStatus.VALIDATED.value
            row.accuracy_percent = result.accuracy_percent
            row.quality_label = result.quality_label.value
            row.difference_days = result.difference_days
            row.needs_verification = result.needs_verification
            if result.real_outcome_date is not None and row.outcome_date is None:
                row.outcome_date = result.real_outcome_date
            row.validated_at = now
            row.updated_at = now
            self._session.add(row)
            self._session.commit()
            self._session.refresh(row)
            return self._row_to_domain(row)

    async def _set_acknowledged(self, record_id: int, acknowledged: bool) -> None:
        with self._guard(f"mark record {record_id} {'read' if acknowledged else 'unread'}"):
            row = self._get_row(record_id)
            row.acknowledged = acknowledged
            row.acknowledged_at = datetime.now(timezone.utc) if acknowledged else None
            row.updated_at = datetime.now(timezone.utc)
            self._session.add(row)
            self._session.commit()

    def _get_row(self, record_id: int) -> RecordRow:
        row = self._session.get(RecordRow, record_id)
        if row is None:
            raise TransportError(f"record {record_id} not found")
        return row

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as error:
            self._session.rollback()
            logger.warning("could not %s: %s", action, error)
            raise TransportError(f"could not {action}: {error}") from error

    @staticmethod
    def _row_to_domain(row: RecordRow) -> Record:
        return Record(
            id=row.id,
            kind=RecordKind(row.kind),
            code=row.code,
            species=row.species,
            genus=row.genus,
            start_date=row.start_date,
            metadata=dict(row.meta_json or {}),
            status=RecordStatus.parse(row.status),
            outcome_date=row.outcome_date,
            predicted_outcome_date=row.predicted_outcome_date,
            predicted_duration_days=row.predicted_duration_days,
            prediction_confidence=row.prediction_confidence,
            prediction_method=row.prediction_method,
            validation_status=ValidationStatus(row.validation_status),
            accuracy_percent=row.accuracy_percent,
            quality_label=QualityLabel(row.quality_label) if row.quality_label else None,
        )

    @staticmethod
    def _domain_to_row(record: Record) -> RecordRow:
        return RecordRow(
            id=record.id,
            kind=record.kind.value,
            code=record.code,
            species=record.species,
            genus=record.genus,
            start_date=record.start_date,
            status=record.status.value,
            outcome_date=record.outcome_date,
            predicted_outcome_date=record.predicted_outcome_date,
            predicted_duration_days=record.predicted_duration_days,
            prediction_confidence=record.prediction_confidence,
            prediction_method=record.prediction_method,
            validation_status=record.validation_status.value,
            accuracy_percent=record.accuracy_percent,
            quality_label=record.quality_label.value if record.quality_label else None,
            meta_json=record.metadata,
        )


_RECORD_COLUMNS = (
    "kind", "code", "species", "genus", "start_date",
    "status", "outcome_date",
    "predicted_outcome_date", "predicted_duration_days", "prediction_confidence", "prediction_method",
    "validation_status", "accuracy_percent", "quality_label",
    "meta_json",
)
