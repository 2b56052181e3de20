"""Card ledger adapter over the Stripe charges API."""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, List

import httpx

from ..core.dates import DateRange, _parse_date_range
from ..errors import MissingCredential
from .ledger import DEFAULT_TIMEOUT_SECONDS, LedgerAdapter, validate_base_url
from .types import LedgerCharge, derive_customer_key

if TYPE_CHECKING:
    from ..config import Settings

__all__ = ["CardLedger", "DEFAULT_STRIPE_BASE_URL", "charge_from_stripe", "metadata_amounts"]

DEFAULT_STRIPE_BASE_URL = "https://api.stripe.com"
PAGE_LIMIT = 100

CENT_VALUE_KEYS = frozenset(
    {
        "gross",
        "net",
        "product_gross",
        "product_net",
        "product_total",
        "total_additions",
        "total_cuts",
        "price",
        "amount",
        "subtotal",
        "tax",
        "fee",
    }
)
CENT_SUFFIXES = ("_gross", "_net", "_total", "_amount", "_price", "_subtotal", "_tax", "_fee")


def _is_cent_key(key: str) -> bool:
    normalized = key.lower()
    return normalized in CENT_VALUE_KEYS or normalized.endswith(CENT_SUFFIXES)


def metadata_amounts(metadata: Mapping[str, str]) -> dict[str, float]:
    """Parse metadata values whose keys name cent amounts into major units."""

    amounts: dict[str, float] = {}
    for key, value in metadata.items():
        if not value or not _is_cent_key(key):
            continue
        try:
            numeric = float(value)
        except (TypeError, ValueError):
            continue
        if math.isfinite(numeric):
            amounts[key] = numeric / 100
    return amounts


def _customer_id(customer: Any) -> str | None:
    if isinstance(customer, str):
        return customer
    if isinstance(customer, Mapping):
        return customer.get("id")
    return None


def charge_from_stripe(raw: Mapping[str, Any]) -> LedgerCharge:
    """Map one Stripe charge object onto a :class:`LedgerCharge`."""

    billing = raw.get("billing_details") or {}
    address = billing.get("address") or {}
    card = (raw.get("payment_method_details") or {}).get("card") or {}
    metadata = {str(key): str(value) for key, value in (raw.get("metadata") or {}).items()}
    email = billing.get("email") or raw.get("receipt_email")

    return LedgerCharge(
        id=raw["id"],
        provider="card",
        amount_minor=int(raw.get("amount") or 0),
        currency=str(raw.get("currency") or "usd").upper(),
        status=raw.get("status"),
        refunded=bool(raw.get("refunded")),
        created_at=datetime.fromtimestamp(int(raw["created"]), tz=timezone.utc),
        customer_key=derive_customer_key(_customer_id(raw.get("customer")), email),
        metadata=metadata,
        metadata_amounts=metadata_amounts(metadata),
        description=raw.get("description"),
        customer_email=email,
        customer_phone=billing.get("phone"),
        city=address.get("city"),
        country=address.get("country") or card.get("country"),
        card_brand=card.get("brand"),
        card_funding=card.get("funding"),
        card_last4=card.get("last4"),
    )


class CardLedger(LedgerAdapter):
    """Succeeded Stripe charges created within a UTC date range.

    Failures propagate to the caller.
    """

    provider = "card"
    service = "stripe"
    degrade_on_failure = False

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_STRIPE_BASE_URL,
        http: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(http=http, timeout=timeout)
        self.api_key = api_key
        self.base_url = validate_base_url(base_url, service=self.service, fallback=DEFAULT_STRIPE_BASE_URL)

    @classmethod
    def from_settings(cls, settings: "Settings", *, http: httpx.Client | None = None) -> "CardLedger":
        return cls(
            settings.stripe_api_key,
            base_url=settings.stripe_base_url,
            http=http,
            timeout=settings.http_timeout_seconds,
        )

    def fetch_charges(self, date_range: DateRange) -> List[LedgerCharge]:
        if not self.api_key:
            raise MissingCredential(self.service, "STRIPE_API_KEY is not configured")

        start_ts, end_ts = _parse_date_range(date_range.start, date_range.end, "UTC")
        params: dict[str, Any] = {
            "limit": PAGE_LIMIT,
            "created[gte]": int(start_ts.timestamp()),
            "created[lte]": int(end_ts.timestamp()),
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        charges: List[LedgerCharge] = []
        while True:
            response = self._request("GET", f"{self.base_url}/v1/charges", params=params, headers=headers)
            payload = self._json(response)
            page = payload.get("data") or []
            charges.extend(charge_from_stripe(raw) for raw in page if raw.get("status") == "succeeded")
            if not payload.get("has_more") or not page:
                break
            params = {**params, "starting_after": page[-1]["id"]}
        return charges
