"""Wallet ledger adapter over the PayPal transaction reporting API."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, List

import httpx
import pandas as pd

from ..core.dates import DateRange, _parse_date_range
from ..errors import MissingCredential
from .currency import parse_major_amount
from .ledger import DEFAULT_TIMEOUT_SECONDS, LedgerAdapter, validate_base_url
from .types import LedgerCharge, derive_customer_key

if TYPE_CHECKING:
    from ..config import Settings

__all__ = [
    "DEFAULT_PAYPAL_BASE_URL",
    "EXPRESS_CHECKOUT_EVENT_CODES",
    "WalletLedger",
    "charge_from_paypal",
    "is_express_checkout",
]

DEFAULT_PAYPAL_BASE_URL = "https://api-m.paypal.com"
EXPRESS_CHECKOUT_EVENT_CODES = frozenset({"T0006", "T1106", "T1006"})
PAGE_SIZE = 500
REPORT_FIELDS = "transaction_info,payer_info,shipping_info"


def _clean(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def _upper(value: Any) -> str | None:
    cleaned = _clean(value)
    return cleaned.upper() if cleaned else None


def _phone(phone: Any) -> str | None:
    if isinstance(phone, str):
        return _clean(phone)
    if not isinstance(phone, Mapping):
        return None
    national = _clean(phone.get("national_number"))
    extension = _clean(phone.get("extension_number"))
    if national and extension:
        return f"{national} ext {extension}"
    return national or extension


def _initiated_at(value: Any) -> datetime:
    if not _clean(value):
        return datetime.now(timezone.utc)
    try:
        stamp = pd.Timestamp(value)
    except ValueError:
        return datetime.now(timezone.utc)
    stamp = stamp.tz_localize("UTC") if stamp.tzinfo is None else stamp.tz_convert("UTC")
    return stamp.to_pydatetime()


def is_express_checkout(detail: Mapping[str, Any]) -> bool:
    info = detail.get("transaction_info") or {}
    code = _upper(info.get("transaction_event_code"))
    if code in EXPRESS_CHECKOUT_EVENT_CODES:
        return True
    description = info.get("transaction_event_code_description")
    return isinstance(description, str) and "express checkout payment" in description.lower()


def charge_from_paypal(detail: Mapping[str, Any]) -> LedgerCharge | None:
    """Map an express-checkout transaction detail, or return ``None`` to skip it.

    Transactions without a transaction id or an order id (invoice id, else
    custom field) are skipped.
    """

    if not is_express_checkout(detail):
        return None

    info = detail.get("transaction_info") or {}
    payer = detail.get("payer_info") or {}
    shipping = detail.get("shipping_info") or {}

    transaction_id = _clean(info.get("transaction_id"))
    order_id = _clean(info.get("invoice_id")) or _clean(info.get("custom_field"))
    if not transaction_id or not order_id:
        return None

    amount = info.get("transaction_amount") or {}
    currency = _upper(amount.get("currency_code")) or "USD"
    address = shipping.get("address") or payer.get("address") or {}
    email = _clean(payer.get("email_address"))
    phone = _phone(payer.get("phone_number")) or _phone(payer.get("phone"))

    return LedgerCharge(
        id=transaction_id,
        provider="wallet",
        amount_minor=parse_major_amount(amount.get("value"), currency),
        currency=currency,
        status=_clean(info.get("transaction_status")),
        refunded=False,
        created_at=_initiated_at(info.get("transaction_initiation_date")),
        customer_key=derive_customer_key(None, email, phone),
        order_id=order_id,
        description=_clean(info.get("transaction_event_code_description")),
        customer_email=email,
        customer_phone=phone,
        city=_clean(address.get("city")) or _clean(address.get("admin_area_2")),
        country=_upper(address.get("country_code")) or _upper(payer.get("country_code")),
    )


def _report_timestamp(stamp: pd.Timestamp) -> str:
    return stamp.to_pydatetime().isoformat(timespec="milliseconds").replace("+00:00", "Z")


class WalletLedger(LedgerAdapter):
    """PayPal express-checkout payments within a UTC date range.

    An unavailable PayPal API yields an empty, degraded batch.
    """

    provider = "wallet"
    service = "paypal"
    degrade_on_failure = True

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        base_url: str = DEFAULT_PAYPAL_BASE_URL,
        http: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(http=http, timeout=timeout)
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = validate_base_url(base_url, service=self.service)

    @classmethod
    def from_settings(cls, settings: "Settings", *, http: httpx.Client | None = None) -> "WalletLedger":
        return cls(
            settings.paypal_client_id,
            settings.paypal_client_secret,
            base_url=settings.paypal_base_url,
            http=http,
            timeout=settings.http_timeout_seconds,
        )

    def access_token(self) -> str:
        if not self.client_id or not self.client_secret:
            raise MissingCredential(self.service, "PAYPAL_CLIENT_ID and PAYPAL_CLIENT_SECRET must be configured")
        response = self._request(
            "POST",
            f"{self.base_url}/v1/oauth2/token",
            auth=(self.client_id, self.client_secret),
            data={"grant_type": "client_credentials"},
        )
        token = self._json(response).get("access_token")
        if not isinstance(token, str) or not token:
            raise MissingCredential(self.service, "token endpoint returned no access token")
        return token

    def transaction_details(self, date_range: DateRange) -> List[dict[str, Any]]:
        """Return every raw transaction detail in the window, following pages."""

        token = self.access_token()
        start_ts, end_ts = _parse_date_range(date_range.start, date_range.end, "UTC")
        headers = {"Authorization": f"Bearer {token}"}

        details: List[dict[str, Any]] = []
        page, total_pages = 1, 1
        while page <= total_pages:
            params = {
                "start_date": _report_timestamp(start_ts),
                "end_date": _report_timestamp(end_ts),
                "page_size": PAGE_SIZE,
                "page": page,
                "fields": REPORT_FIELDS,
            }
            payload = self._json(
                self._request("GET", f"{self.base_url}/v1/reporting/transactions", params=params, headers=headers)
            )
            batch = payload.get("transaction_details")
            if isinstance(batch, list):
                details.extend(batch)
            reported = payload.get("total_pages")
            total_pages = reported if isinstance(reported, int) and reported > 0 else 1
            page += 1
        return details

    def fetch_charges(self, date_range: DateRange) -> List[LedgerCharge]:
        charges = (charge_from_paypal(detail) for detail in self.transaction_details(date_range))
        return [charge for charge in charges if charge is not None]
