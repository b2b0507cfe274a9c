from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Any

import requests
from pydantic import ValidationError

from breeding_tracker.entities.record import Record, RecordStatus, ValidationResult
from breeding_tracker.errors import TransportError
from breeding_tracker.interfaces.record_gateway import RecordGateway
from breeding_tracker.schemas import RecordEnvelope, ValidationEnvelope


class HttpRecordGateway(RecordGateway):
    """RecordGateway over the records REST API.

    Calls are blocking ``requests`` calls run in a worker thread so the
    event loop keeps ticking.
    """

    def __init__(self, base_url: str, token: str = "", timeout_seconds: float = 30.0):
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.token = token
        self.timeout_seconds = timeout_seconds
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_settings(cls, settings) -> "HttpRecordGateway":
        return cls(
            base_url=settings.api_base_url,
            token=settings.api_token,
            timeout_seconds=settings.api_timeout_seconds,
        )

    async def list_unresolved(self) -> list[Record]:
        payload = await self._call("GET", "records/unresolved/")
        if isinstance(payload, dict):
            payload = payload.get("results", [])
        if not isinstance(payload, list):
            raise TransportError(f"unexpected unresolved listing payload: {type(payload).__name__}")
        return [self._to_record(item) for item in payload]

    async def get_record(self, record_id: int) -> Record:
        return self._to_record(await self._call("GET", f"records/{record_id}/"))

    async def apply_transition(
        self, record_id: int, status: RecordStatus, outcome_date: date | None = None,
    ) -> Record:
        body: dict[str, Any] = {"status": str(status)}
        if outcome_date is not None:
            body["outcome_date"] = outcome_date.isoformat()
        return self._to_record(await self._call("POST", f"records/{record_id}/transition/", body))

    async def mark_acknowledged(self, record_id: int) -> None:
        await self._call("POST", f"records/{record_id}/acknowledge/")

    async def mark_unacknowledged(self, record_id: int) -> None:
        await self._call("POST", f"records/{record_id}/unacknowledge/")

    async def record_validation(self, record_id: int, result: ValidationResult) -> Record:
        body = ValidationEnvelope.from_result(result).model_dump(mode="json")
        return self._to_record(await self._call("POST", f"records/{record_id}/validate-prediction/", body))

    async def _call(self, method: str, path: str, body: dict[str, Any] | None = None) -> Any:
        return await asyncio.to_thread(self._request, method, path, body)

    def _request(self, method: str, path: str, body: dict[str, Any] | None = None) -> Any:
        url = self.base_url + path
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        self.logger.debug("%s %s", method, url)
        try:
            response = requests.request(
                method,
                url,
                json=body,
                headers=headers,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            if not response.content:
                return None
            return response.json()
        except (requests.RequestException, ValueError) as error:
            raise TransportError(f"{method} {url} failed: {error}") from error

    @staticmethod
    def _to_record(payload: Any) -> Record:
        try:
            return RecordEnvelope.model_validate(payload).to_domain()
        except ValidationError as error:
            raise TransportError(f"malformed record payload: {error}") from error
