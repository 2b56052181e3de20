"""Shared plumbing for the HTTP ledger adapters."""

from __future__ import annotations

from typing import Any, ClassVar, List
from urllib.parse import urlsplit

import httpx
import structlog

from ..core.dates import DateRange
from ..errors import MissingCredential, ServiceUnavailable, UnreachableService
from .types import LedgerBatch, LedgerCharge, Provider

__all__ = ["DEFAULT_TIMEOUT_SECONDS", "LedgerAdapter", "validate_base_url"]

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


def validate_base_url(url: str, *, service: str, fallback: str | None = None) -> str:
    """Return ``url`` without a trailing slash if it is an http(s) URL.

    An invalid URL is replaced by ``fallback`` (with a warning) when one is
    given, and rejected with ``ValueError`` otherwise.
    """

    parts = urlsplit(url or "")
    if parts.scheme in ("http", "https") and parts.hostname:
        return url.rstrip("/")
    if fallback is None:
        raise ValueError(f"{service} base URL must be an http or https URL, received: {url!r}")
    logger.warning("invalid_base_url", service=service, base_url=url, fallback=fallback)
    return fallback


class LedgerAdapter:
    """Fetch one provider's successful charges for a date range.

    Subclasses implement :meth:`fetch_charges`.  When ``degrade_on_failure``
    is set, an unavailable service yields an empty, ``degraded`` batch instead
    of an exception.
    """

    provider: ClassVar[Provider]
    service: ClassVar[str]
    degrade_on_failure: ClassVar[bool] = False

    def __init__(self, *, http: httpx.Client | None = None, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self._owns_http = http is None
        self.http = http or httpx.Client(timeout=timeout)

    def close(self) -> None:
        """Close the HTTP client if this adapter created it."""

        if self._owns_http:
            self.http.close()

    def __enter__(self) -> "LedgerAdapter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def fetch(self, date_range: DateRange) -> LedgerBatch:
        try:
            charges = self.fetch_charges(date_range)
        except ServiceUnavailable as exc:
            if not self.degrade_on_failure:
                raise
            logger.warning(
                "ledger_fetch_degraded",
                provider=self.provider,
                service=exc.service,
                error=str(exc),
            )
            return LedgerBatch(self.provider, [], degraded=True, error=str(exc))

        start, end = date_range.isoformat()
        logger.info("ledger_fetched", provider=self.provider, start=start, end=end, charges=len(charges))
        return LedgerBatch(self.provider, charges)

    def fetch_charges(self, date_range: DateRange) -> List[LedgerCharge]:
        raise NotImplementedError

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self.http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise UnreachableService(self.service, f"request to {url} failed: {exc}") from exc
        if response.status_code in (401, 403):
            raise MissingCredential(self.service, f"credentials rejected with HTTP {response.status_code}")
        if response.is_error:
            raise UnreachableService(
                self.service, f"HTTP {response.status_code} from {url}: {response.text[:500]}"
            )
        return response

    def _json(self, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise UnreachableService(self.service, "response body is not valid JSON") from exc
        if not isinstance(data, dict):
            raise UnreachableService(self.service, "response body is not a JSON object")
        return data
