from breeding_tracker.schemas.payload_contracts import (
    PredictionEnvelope,
    RecordEnvelope,
    ValidationEnvelope,
)

__all__ = [
    "RecordEnvelope",
    "PredictionEnvelope",
    "ValidationEnvelope",
]
