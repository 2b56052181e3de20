"""Currency conversion into a base currency."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

import httpx
import structlog

from ..errors import NoRateAvailable, UnreachableService
from .currency import round_major
from .ledger import DEFAULT_TIMEOUT_SECONDS, validate_base_url

if TYPE_CHECKING:
    from ..config import Settings

__all__ = ["Conversion", "CurrencyConverter", "FxRateClient", "normalize_rates"]

logger = structlog.get_logger(__name__)

DEFAULT_FX_BASE_URL = "https://api.exchangerate.host"

RateSource = Literal["override", "remote", "default"]


def normalize_rates(raw: Mapping[str, Any]) -> dict[str, float]:
    """Upper-case currency codes and drop non-numeric or non-positive rates."""

    rates: dict[str, float] = {}
    for code, value in raw.items():
        if isinstance(value, bool):
            continue
        try:
            numeric = float(value)
        except (TypeError, ValueError):
            continue
        if math.isfinite(numeric) and numeric > 0:
            rates[str(code).upper()] = numeric
    return rates


@dataclass(frozen=True)
class Conversion:
    currency: str
    amount: float
    converted_amount: float
    rate_used: float
    rate_source: RateSource


class FxRateClient:
    """Latest rates from an exchangerate.host compatible endpoint."""

    service = "fx"

    def __init__(
        self,
        base_url: str = DEFAULT_FX_BASE_URL,
        *,
        http: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.base_url = validate_base_url(base_url, service=self.service)
        self._owns_http = http is None
        self.http = http or httpx.Client(timeout=timeout)

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> "FxRateClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def latest(self, base: str = "USD") -> dict[str, float]:
        """Return units of each currency per one unit of ``base``."""

        url = f"{self.base_url}/latest"
        try:
            response = self.http.get(url, params={"base": base})
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise UnreachableService(self.service, f"failed to fetch rates: {exc}") from exc
        except ValueError as exc:
            raise UnreachableService(self.service, f"non-JSON response: {response.text[:200]}") from exc

        raw = payload.get("rates") if isinstance(payload, dict) else None
        if not isinstance(raw, dict):
            raise UnreachableService(self.service, f"unexpected response shape: {response.text[:200]}")
        rates = normalize_rates(raw)
        if not rates:
            raise UnreachableService(self.service, "no usable rates returned")
        logger.info("fx_rates_fetched", base=base, currencies=len(rates))
        return rates


class CurrencyConverter:
    """Convert major-unit amounts into ``base``.

    Override rates are quoted in base units per unit of the currency and win
    over remote rates.  Remote rates are fetched only when needed and are
    inverted, since the FX service quotes currency units per unit of base.
    """

    def __init__(self, rates: FxRateClient) -> None:
        self.rates = rates

    @classmethod
    def from_settings(cls, settings: "Settings", *, http: httpx.Client | None = None) -> "CurrencyConverter":
        return cls(FxRateClient(settings.fx_base_url, http=http, timeout=settings.http_timeout_seconds))

    def close(self) -> None:
        self.rates.close()

    def rate(
        self,
        currency: str,
        *,
        base: str = "USD",
        override_rates: Mapping[str, Any] | None = None,
    ) -> tuple[float, RateSource]:
        currency = currency.upper()
        base = base.upper()
        if currency == base:
            return 1.0, "default"

        overrides = normalize_rates(override_rates or {})
        if currency in overrides:
            return overrides[currency], "override"

        remote = self.rates.latest(base)
        if currency in remote:
            return 1 / remote[currency], "remote"
        raise NoRateAvailable(currency, base)

    def convert(
        self,
        currency: str,
        amount: float,
        *,
        base: str = "USD",
        override_rates: Mapping[str, Any] | None = None,
    ) -> Conversion:
        rate, source = self.rate(currency, base=base, override_rates=override_rates)
        return Conversion(
            currency=currency.upper(),
            amount=amount,
            converted_amount=round_major(amount * rate),
            rate_used=rate,
            rate_source=source,
        )
