from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Any, Mapping

import requests
from pydantic import ValidationError

from breeding_tracker.entities.record import Prediction
from breeding_tracker.errors import TransportError
from breeding_tracker.interfaces.estimator import Estimator
from breeding_tracker.schemas import PredictionEnvelope


class HttpEstimator(Estimator):
    def __init__(self, base_url: str, token: str = "", timeout_seconds: float = 30.0):
        self.url = base_url.rstrip("/") + "/predictions/estimate/"
        self.token = token
        self.timeout_seconds = timeout_seconds
        self.logger = logging.getLogger(__name__)

    async def estimate(
        self,
        species: Mapping[str, Any],
        start_date: date,
        conditions: Mapping[str, Any] | None = None,
    ) -> Prediction:
        body = {
            "species": dict(species),
            "start_date": start_date.isoformat(),
            "conditions": dict(conditions or {}),
        }
        payload = await asyncio.to_thread(self._post, body)
        try:
            return PredictionEnvelope.model_validate(payload).to_domain()
        except ValidationError as error:
            raise TransportError(f"malformed estimate payload: {error}") from error

    def _post(self, body: dict[str, Any]) -> Any:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            response = requests.post(self.url, json=body, headers=headers, timeout=self.timeout_seconds)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as error:
            raise TransportError(f"could not get estimate for {body['species']}: {error}") from error
