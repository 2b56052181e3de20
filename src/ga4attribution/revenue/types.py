"""Provider-agnostic ledger records and rollup results."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import List, Literal

import pandas as pd

from .currency import to_major_units

__all__ = [
    "BrandBreakdown",
    "ChargeSummary",
    "CurrencyBreakdown",
    "CustomerBreakdown",
    "LedgerBatch",
    "LedgerCharge",
    "ProductBreakdown",
    "Provider",
    "TopCustomersSummary",
    "UNKNOWN_CUSTOMER",
    "derive_customer_key",
]

Provider = Literal["card", "wallet"]

UNKNOWN_CUSTOMER = "unknown"


def derive_customer_key(identifier: str | None, *contacts: str | None) -> str:
    """Prefer an account identifier, then the first contact, then ``"unknown"``."""

    for candidate in (identifier, *contacts):
        if candidate:
            return candidate
    return UNKNOWN_CUSTOMER


@dataclass(frozen=True)
class LedgerCharge:
    """A successful payment as reported by either ledger."""

    id: str
    provider: Provider
    amount_minor: int
    currency: str
    status: str | None
    refunded: bool
    created_at: datetime
    customer_key: str
    metadata: Mapping[str, str] = field(default_factory=dict)
    metadata_amounts: Mapping[str, float] = field(default_factory=dict)
    order_id: str | None = None
    description: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    city: str | None = None
    country: str | None = None
    card_brand: str | None = None
    card_funding: str | None = None
    card_last4: str | None = None

    @property
    def amount_major(self) -> float:
        return to_major_units(self.amount_minor, self.currency)

    @property
    def product_name(self) -> str | None:
        return self.metadata.get("product_name") or None


@dataclass(frozen=True)
class LedgerBatch:
    """The charges fetched from one ledger for one window.

    ``degraded`` marks a batch that is empty because the ledger could not be
    reached and the adapter is configured to tolerate that.
    """

    provider: Provider
    charges: List[LedgerCharge]
    degraded: bool = False
    error: str | None = None


@dataclass(frozen=True)
class CurrencyBreakdown:
    currency: str
    count: int
    refunded_count: int
    gross_minor: int
    gross_major: float
    avg_ticket_major: float | None


@dataclass(frozen=True)
class BrandBreakdown:
    brand: str
    count: int
    gross_minor: int
    gross_major: float


@dataclass(frozen=True)
class ProductBreakdown:
    product_name: str
    count: int
    gross_minor: int
    gross_major: float


@dataclass(frozen=True)
class CustomerBreakdown:
    customer_key: str
    count: int
    gross_minor: int
    gross_major: float
    last_charge_id: str
    last_charge_at: datetime
    currency_breakdown: List[CurrencyBreakdown]
    metadata_totals: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ChargeSummary:
    provider: Provider
    start_date: str
    end_date: str
    total_count: int
    refunded_count: int
    currency_breakdown: List[CurrencyBreakdown]
    brand_breakdown: List[BrandBreakdown]
    top_products: List[ProductBreakdown]
    metadata_totals: dict[str, float]
    insights: List[str]
    degraded: bool = False

    def to_dataframe(self) -> pd.DataFrame:
        """Return the currency breakdown as a dataframe indexed by currency."""

        columns = ["currency", "count", "refunded_count", "gross_minor", "gross_major", "avg_ticket_major"]
        frame = pd.DataFrame([asdict(row) for row in self.currency_breakdown], columns=columns)
        return frame.set_index("currency")


@dataclass(frozen=True)
class TopCustomersSummary:
    provider: Provider
    start_date: str
    end_date: str
    total_customers: int
    top_customers: List[CustomerBreakdown]
    insights: List[str]
    degraded: bool = False

    def to_dataframe(self) -> pd.DataFrame:
        """Return one row per listed customer, without the nested breakdowns."""

        columns = ["customer_key", "count", "gross_minor", "gross_major", "last_charge_id", "last_charge_at"]
        rows = [{column: getattr(customer, column) for column in columns} for customer in self.top_customers]
        return pd.DataFrame(rows, columns=columns).set_index("customer_key")
