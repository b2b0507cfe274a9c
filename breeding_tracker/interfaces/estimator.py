from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Mapping

from breeding_tracker.entities.record import Prediction


class Estimator(ABC):
    """External estimation service. Its model is opaque: an estimate plus a confidence."""

    @abstractmethod
    async def estimate(
        self,
        species: Mapping[str, Any],
        start_date: date,
        conditions: Mapping[str, Any] | None = None,
    ) -> Prediction:
        raise NotImplementedError
