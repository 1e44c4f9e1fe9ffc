"""CoTrip incidents client.

Fetches every traffic incident from the CoTrip (Colorado DOT) incidents API by following the
server-issued `next-offset` cursor until the server reports that no pages remain.

- Auth: the API key travels as the `apiKey` query parameter; a missing key fails before any request.
- Paging: each request carries the cursor returned by the previous response, so pages are fetched
  strictly one after another.
- Reliability: transient failures (network faults, 408/429/5xx) are retried with exponential backoff;
  anything else is surfaced immediately as a typed `IngestError`.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from cotripfeed.ingestion.errors import AuthError, ProtocolError, TransportError
from cotripfeed.ingestion.schemas import RawIncident
from cotripfeed.settings import AppConfig, CotripSection, get_config

logger = logging.getLogger(__name__)

NEXT_OFFSET_HEADER = "next-offset"
# Literal header value the API sends on the last page.
NO_MORE_PAGES = "None"


def _next_cursor(response: httpx.Response) -> Optional[str]:
    """Return the cursor for the following page, or None when paging is finished."""

    value = response.headers.get(NEXT_OFFSET_HEADER)
    if value is None:
        return None
    value = value.strip()
    if not value or value == NO_MORE_PAGES:
        return None
    return value


def _extract_features(payload: Any) -> list[Any]:
    if not isinstance(payload, dict) or not isinstance(payload.get("features"), list):
        raise ProtocolError("Unexpected CoTrip response shape; expected an object with a 'features' array.")
    return payload["features"]


class CotripIncidentClient:
    """Paginated reader for the CoTrip incidents endpoint.

    The client owns its `httpx.Client` unless one is injected; call `close()` (or use it as a
    context manager) to release sockets.
    """

    def __init__(
        self,
        token: str,
        settings: Optional[CotripSection] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.token = (token or "").strip()
        self.settings = settings or CotripSection()
        # Absolute, so the configured API base wins over any base_url on an injected client.
        self.incidents_url = httpx.URL(self.settings.base_url).join(self.settings.incidents_endpoint)

        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(
            base_url=self.settings.base_url,
            timeout=self.settings.request_timeout_seconds,
            headers={"accept": "application/json"},
        )

    @classmethod
    def from_config(
        cls, config: Optional[AppConfig] = None, http_client: Optional[httpx.Client] = None
    ) -> "CotripIncidentClient":
        resolved = config or get_config()
        return cls(token=resolved.layer.token, settings=resolved.cotrip, http_client=http_client)

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "CotripIncidentClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @staticmethod
    def _parse_retry_after_seconds(value: Optional[str]) -> Optional[float]:
        """Parse Retry-After given in seconds; HTTP-date values are ignored."""

        if not value:
            return None
        try:
            seconds = float(value.strip())
        except ValueError:
            return None
        if seconds < 0:
            return None
        return seconds

    def _compute_backoff_seconds(self, attempt: int, retry_after_seconds: Optional[float]) -> float:
        settings = self.settings
        delay = settings.retry_backoff_seconds * (settings.backoff_multiplier**attempt)
        delay = min(settings.max_backoff_seconds, max(0.0, delay))
        if settings.jitter_seconds > 0:
            delay += random.uniform(0.0, settings.jitter_seconds)
        if settings.respect_retry_after and retry_after_seconds is not None:
            delay = max(delay, retry_after_seconds)
        return delay

    @staticmethod
    def _is_retryable_status(status_code: int) -> bool:
        return status_code in {408, 429, 500, 502, 503, 504}

    def _get_page(self, params: dict[str, str]) -> httpx.Response:
        """Issue one page request, retrying transient failures."""

        max_retries = max(0, int(self.settings.max_retries))
        last_error: Optional[TransportError] = None
        last_cause: Optional[httpx.HTTPError] = None

        for attempt in range(max_retries + 1):
            retry_after_seconds: Optional[float] = None
            try:
                response = self._http.get(self.incidents_url, params=params)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as exc:
                last_cause = exc
                status = int(exc.response.status_code)
                last_error = TransportError(
                    f"CoTrip request failed with HTTP {status}.", status_code=status
                )
                if not self._is_retryable_status(status):
                    break
                retry_after_seconds = self._parse_retry_after_seconds(
                    exc.response.headers.get("retry-after")
                )
            except httpx.HTTPError as exc:
                last_cause = exc
                # The message is the exception type only; request URLs carry the API key.
                last_error = TransportError(f"CoTrip request error ({type(exc).__name__}).")

            if attempt >= max_retries:
                break
            delay = self._compute_backoff_seconds(attempt=attempt, retry_after_seconds=retry_after_seconds)
            logger.warning(
                "CoTrip request failed (%s). Retrying in %.2fs (attempt %s/%s).",
                last_error,
                delay,
                attempt + 1,
                max_retries,
            )
            time.sleep(delay)

        raise last_error or TransportError("CoTrip request failed.") from last_cause

    def fetch_raw(self) -> list[Any]:
        """Return every raw feature dict across all pages."""

        if not self.token:
            raise AuthError("No CoTrip API token provided.")

        items: list[Any] = []
        cursor: Optional[str] = None
        page = 0
        while True:
            logger.info("Fetching page %s of incidents", page)
            params = {"apiKey": self.token}
            if cursor is not None:
                params["offset"] = cursor

            response = self._get_page(params)
            try:
                payload = response.json()
            except ValueError as exc:
                raise ProtocolError("CoTrip response body is not valid JSON.") from exc
            items.extend(_extract_features(payload))
            page += 1

            cursor = _next_cursor(response)
            if cursor is None:
                break
            if self.settings.max_pages is not None and page >= self.settings.max_pages:
                raise ProtocolError(
                    f"CoTrip kept returning a cursor after {page} pages (max_pages={self.settings.max_pages})."
                )

        logger.info("Fetched %s incidents in %s page(s)", len(items), page)
        return items

    def fetch_incidents(self) -> list[RawIncident]:
        """Fetch all incidents and validate each one at the boundary."""

        incidents: list[RawIncident] = []
        for index, item in enumerate(self.fetch_raw()):
            try:
                incidents.append(RawIncident.model_validate(item))
            except ValidationError as exc:
                raise ProtocolError(f"Incident #{index} does not match the expected shape: {exc}") from exc
        return incidents


def fetch_incidents(
    api_base: str,
    token: str,
    *,
    http_client: Optional[httpx.Client] = None,
    settings: Optional[CotripSection] = None,
) -> list[RawIncident]:
    """Convenience wrapper: fetch every incident from `api_base` and close the client afterwards.

    `api_base` is used even when `http_client` carries a different `base_url`.
    """

    resolved = (settings or CotripSection()).model_copy(update={"base_url": api_base})
    client = CotripIncidentClient(token=token, settings=resolved, http_client=http_client)
    try:
        return client.fetch_incidents()
    finally:
        client.close()
