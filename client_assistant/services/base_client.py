"""Shared async HTTP plumbing for the CRM and project-system clients.

Both upstream APIs are called through :meth:`BaseAPIClient._request`, which
retries timeouts, connection failures and 5xx responses with exponential
backoff.  4xx responses are raised immediately.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from client_assistant.services.metrics import metrics

logger = logging.getLogger(__name__)

# ── Retry configuration ─────────────────────────────────────────────
MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0
REQUEST_TIMEOUT_SECONDS = 15.0


class APIError(Exception):
    """Raised when an upstream API call fails after all retries."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class BaseAPIClient:
    """Async httpx wrapper with retries and per-call metrics.

    Subclasses set ``service_name`` (used in logs and metrics) and
    ``error_class`` (the :class:`APIError` subclass they raise).
    """

    service_name = "api"
    error_class: type[APIError] = APIError

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str],
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Any:
        """Execute an HTTP request with exponential-backoff retries."""
        last_error: Exception | None = None
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                async with metrics.track(self.service_name, f"{method} {path}"):
                    response = await self._client.request(
                        method, path, params=params, json=json_body,
                    )
                    if response.status_code >= 400:
                        kind = "Server" if response.status_code >= 500 else "Client"
                        raise self.error_class(
                            f"{kind} error {response.status_code}: {response.text[:200]}",
                            status_code=response.status_code,
                        )
                return response.json()

            except (httpx.TimeoutException, httpx.ConnectError) as exc:
                last_error = exc
                logger.warning(
                    "%s API attempt %d/%d failed (%s). Retrying in %.1fs…",
                    self.service_name,
                    attempt,
                    MAX_RETRIES,
                    type(exc).__name__,
                    INITIAL_BACKOFF_SECONDS * (2 ** (attempt - 1)),
                )
            except APIError as exc:
                if exc.status_code and exc.status_code >= 500:
                    last_error = exc
                    logger.warning(
                        "%s API server error on attempt %d/%d. Retrying…",
                        self.service_name,
                        attempt,
                        MAX_RETRIES,
                    )
                else:
                    raise  # 4xx errors are not retried

            if attempt < MAX_RETRIES:
                await asyncio.sleep(INITIAL_BACKOFF_SECONDS * (2 ** (attempt - 1)))

        raise self.error_class(
            f"{self.service_name} API request failed after {MAX_RETRIES} retries: {last_error}",
            status_code=getattr(last_error, "status_code", None),
        )
