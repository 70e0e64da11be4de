"""HTTP client for third-party game-stat APIs.

Errors never escape :meth:`ApiClient.request`; every outcome is folded into
an :class:`ApiResponse`. Rate limiting (429) and transport failures are
retried with exponential backoff.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

import httpx

from ..config import GAME_API_MAX_RETRIES, GAME_API_RETRY_DELAY
from .types import ApiResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


def _error_message(response: httpx.Response) -> str:
    fallback = f"API Error: {response.status_code}"
    text = response.text
    try:
        body = response.json()
    except ValueError:
        return text or fallback
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        # Riot nests the message under ``status``.
        status = body.get("status")
        if not message and isinstance(status, dict):
            message = status.get("message")
        if isinstance(message, str) and message:
            return message
    return fallback


def _retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("Retry-After")
    if not raw:
        return None
    try:
        return max(float(raw), 0.0)
    except ValueError:
        return None


class ApiClient:
    def __init__(
        self,
        base_url: str = "",
        *,
        headers: Mapping[str, str] | None = None,
        retries: int = GAME_API_MAX_RETRIES,
        retry_delay: float = GAME_API_RETRY_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.retries = retries
        self.retry_delay = retry_delay
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Accept": "application/json", **(headers or {})},
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _backoff(self, delay: float, attempt: int) -> float:
        return delay * (2 ** attempt)

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
        retries: int | None = None,
        retry_delay: float | None = None,
    ) -> ApiResponse:
        remaining = self.retries if retries is None else retries
        delay = self.retry_delay if retry_delay is None else retry_delay
        attempt = 0

        while True:
            try:
                response = await self._client.request(
                    method, endpoint, params=params, json=json, headers=headers
                )
            except httpx.TransportError as exc:
                if remaining > 0:
                    wait = self._backoff(delay, attempt)
                    logger.warning(
                        "Request to %s failed (%s); retrying in %.2fs", endpoint, exc, wait
                    )
                    remaining -= 1
                    attempt += 1
                    await asyncio.sleep(wait)
                    continue
                logger.error("API request failed: %s %s: %s", method, endpoint, exc)
                return ApiResponse(
                    data=None,
                    error=str(exc) or exc.__class__.__name__,
                    status=0,
                )

            if response.status_code == 429 and remaining > 0:
                wait = _retry_after(response)
                if wait is None:
                    wait = self._backoff(delay, attempt)
                logger.warning("Rate limited when calling %s; retrying in %.2fs", endpoint, wait)
                remaining -= 1
                attempt += 1
                await asyncio.sleep(wait)
                continue

            if response.is_error:
                return ApiResponse(
                    data=None,
                    error=_error_message(response),
                    status=response.status_code,
                )

            try:
                data = response.json()
            except ValueError:
                return ApiResponse(
                    data=None,
                    error="invalid JSON in response",
                    status=response.status_code,
                )
            return ApiResponse(data=data, error=None, status=response.status_code)

    async def get(self, endpoint: str, **kwargs: Any) -> ApiResponse:
        return await self.request("GET", endpoint, **kwargs)

    async def post(self, endpoint: str, data: Any = None, **kwargs: Any) -> ApiResponse:
        return await self.request("POST", endpoint, json=data, **kwargs)
