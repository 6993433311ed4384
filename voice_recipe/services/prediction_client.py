from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from voice_recipe.core.errors import TransportError


class PredictionClient:
    def __init__(
        self,
        base_url: str,
        api_token: str,
        *,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.headers = {
            "Authorization": f"Token {api_token}",
            "Content-Type": "application/json",
        }
        self._client = client

    async def create_prediction(self, payload: dict[str, Any]) -> dict[str, Any]:
        async with self._session() as client:
            try:
                response = await client.post(f"{self.base_url}/predictions", json=payload, headers=self.headers)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise TransportError(f"prediction submit failed: {exc}") from exc
            prediction = _json_body(response)
        if not prediction.get("id"):
            raise TransportError("prediction submit returned no id")
        return prediction

    async def get_prediction(self, prediction_id: str) -> dict[str, Any]:
        async with self._session() as client:
            try:
                response = await client.get(f"{self.base_url}/predictions/{prediction_id}", headers=self.headers)
                if response.status_code == 404:
                    raise TransportError(f"prediction not found: {prediction_id}")
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise TransportError(f"prediction poll failed for id={prediction_id}: {exc}") from exc
            return _json_body(response)

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            yield client


def _json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError as exc:
        raise TransportError(f"runner returned a non-JSON body (status={response.status_code})") from exc
    if not isinstance(payload, dict):
        raise TransportError(f"runner returned unexpected payload type: {type(payload).__name__}")
    return payload
