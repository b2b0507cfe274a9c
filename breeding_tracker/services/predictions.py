from __future__ import annotations

import logging
from typing import Any, Mapping

from breeding_tracker.entities.record import Prediction, Record
from breeding_tracker.errors import MissingPredictionError, PredictionLockedError
from breeding_tracker.interfaces.estimator import Estimator

logger = logging.getLogger(__name__)


def attach_prediction(record: Record, prediction: Prediction) -> Record:
    """Replace the record's prediction with ``prediction``.

    A prediction is frozen once the record is finalized or validated, since
    the validation result was computed against it.
    """
    if record.is_resolved or record.is_validated:
        raise PredictionLockedError(
            f"record {record.id} is {record.status}/{record.validation_status}, its prediction is locked"
        )
    if prediction.outcome_date is None and prediction.duration_days is None:
        raise MissingPredictionError("a prediction needs an outcome date or a duration")

    record.predicted_outcome_date = prediction.outcome_date
    record.predicted_duration_days = prediction.duration_days
    record.prediction_confidence = prediction.confidence
    record.prediction_method = prediction.method
    return record


async def request_prediction(
    record: Record,
    estimator: Estimator,
    conditions: Mapping[str, Any] | None = None,
) -> Prediction:
    """Ask ``estimator`` for a new prediction and attach it to ``record``."""
    if record.is_resolved or record.is_validated:
        raise PredictionLockedError(f"record {record.id} can no longer be re-estimated")
    if record.start_date is None:
        raise MissingPredictionError(f"record {record.id} has no start date to estimate from")

    species = {"species": record.species, "genus": record.genus, "kind": record.kind.value}
    prediction = await estimator.estimate(species, record.start_date, conditions)
    attach_prediction(record, prediction)

    logger.info(
        "record %s: predicted %s (%s days, confidence=%s, method=%s)",
        record.id, prediction.outcome_date, prediction.duration_days,
        prediction.confidence, prediction.method,
    )
    return prediction
