"""Per-currency, per-brand, per-product and per-customer charge rollups.

The same functions serve both ledgers.  Every aggregate is a pure function of
the charge list, so identical input yields identical output.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import List

import pandas as pd

from ..core.dates import DateRange
from .currency import round_major, to_major_units
from .insights import charge_summary_insights, top_customer_insights
from .types import (
    BrandBreakdown,
    ChargeSummary,
    CurrencyBreakdown,
    CustomerBreakdown,
    LedgerCharge,
    ProductBreakdown,
    Provider,
    TopCustomersSummary,
)

__all__ = [
    "MAX_TOP_CUSTOMERS",
    "REFUND_STATUSES",
    "TOP_PRODUCTS",
    "brand_breakdown",
    "currency_breakdown",
    "customer_breakdown",
    "is_refunded",
    "metadata_totals",
    "product_breakdown",
    "summarize_charges",
    "summarize_top_customers",
]

REFUND_STATUSES = frozenset({"reversed", "cancelled"})
MAX_TOP_CUSTOMERS = 50
TOP_PRODUCTS = 10
UNKNOWN_BRAND = "unknown"


def is_refunded(charge: LedgerCharge) -> bool:
    if charge.refunded:
        return True
    status = (charge.status or "").lower()
    return "refund" in status or status in REFUND_STATUSES


def _charges_frame(charges: Sequence[LedgerCharge]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "currency": [charge.currency.upper() for charge in charges],
            "brand": [charge.card_brand or UNKNOWN_BRAND for charge in charges],
            "product_name": [charge.product_name for charge in charges],
            "amount_minor": [charge.amount_minor for charge in charges],
            "amount_major": [charge.amount_major for charge in charges],
            "refunded": [is_refunded(charge) for charge in charges],
        }
    )


def _by_gross_major(rows: list) -> list:
    # ``sorted`` is stable, so ties keep first-seen order.
    return sorted(rows, key=lambda row: row.gross_major, reverse=True)


def currency_breakdown(charges: Sequence[LedgerCharge]) -> List[CurrencyBreakdown]:
    """Group charges by upper-cased currency, largest gross first."""

    if not charges:
        return []
    grouped = _charges_frame(charges).groupby("currency", sort=False).agg(
        count=("amount_minor", "size"),
        refunded_count=("refunded", "sum"),
        gross_minor=("amount_minor", "sum"),
    )
    rows = []
    for currency, row in grouped.iterrows():
        count = int(row["count"])
        gross_minor = int(row["gross_minor"])
        gross_major = to_major_units(gross_minor, str(currency))
        rows.append(
            CurrencyBreakdown(
                currency=str(currency),
                count=count,
                refunded_count=int(row["refunded_count"]),
                gross_minor=gross_minor,
                gross_major=gross_major,
                avg_ticket_major=round_major(gross_major / count) if count > 0 else None,
            )
        )
    return _by_gross_major(rows)


def _grouped_amounts(frame: pd.DataFrame, column: str) -> list[tuple[str, int, int, float]]:
    grouped = frame.groupby(column, sort=False).agg(
        count=("amount_minor", "size"),
        gross_minor=("amount_minor", "sum"),
        gross_major=("amount_major", "sum"),
    )
    return [
        (str(key), int(row["count"]), int(row["gross_minor"]), round_major(float(row["gross_major"])))
        for key, row in grouped.iterrows()
    ]


def brand_breakdown(charges: Sequence[LedgerCharge]) -> List[BrandBreakdown]:
    """Group charges by card brand (``"unknown"`` when absent)."""

    if not charges:
        return []
    rows = [
        BrandBreakdown(brand=key, count=count, gross_minor=minor, gross_major=major)
        for key, count, minor, major in _grouped_amounts(_charges_frame(charges), "brand")
    ]
    return _by_gross_major(rows)


def product_breakdown(charges: Sequence[LedgerCharge], top: int = TOP_PRODUCTS) -> List[ProductBreakdown]:
    """Group charges carrying a ``product_name`` metadata entry."""

    frame = _charges_frame(charges).dropna(subset=["product_name"]) if charges else None
    if frame is None or frame.empty:
        return []
    rows = [
        ProductBreakdown(product_name=key, count=count, gross_minor=minor, gross_major=major)
        for key, count, minor, major in _grouped_amounts(frame, "product_name")
    ]
    return _by_gross_major(rows)[:top]


def metadata_totals(charges: Sequence[LedgerCharge]) -> dict[str, float]:
    totals: dict[str, float] = {}
    for charge in charges:
        _merge_totals(totals, charge.metadata_amounts)
    return {key: round_major(value) for key, value in totals.items()}


def _merge_totals(totals: dict[str, float], addition: Mapping[str, float]) -> None:
    for key, value in addition.items():
        totals[key] = totals.get(key, 0.0) + value


def customer_breakdown(charges: Sequence[LedgerCharge]) -> List[CustomerBreakdown]:
    """Group charges by customer key, largest gross first."""

    groups: dict[str, list[LedgerCharge]] = {}
    for charge in charges:
        groups.setdefault(charge.customer_key, []).append(charge)

    customers = []
    for customer_key, members in groups.items():
        last = members[0]
        for charge in members[1:]:
            if charge.created_at > last.created_at:
                last = charge
        customers.append(
            CustomerBreakdown(
                customer_key=customer_key,
                count=len(members),
                gross_minor=sum(charge.amount_minor for charge in members),
                gross_major=round_major(sum(charge.amount_major for charge in members)),
                last_charge_id=last.id,
                last_charge_at=last.created_at,
                currency_breakdown=currency_breakdown(members),
                metadata_totals=metadata_totals(members),
            )
        )
    return _by_gross_major(customers)


def summarize_charges(
    provider: Provider,
    date_range: DateRange,
    charges: Sequence[LedgerCharge],
    *,
    degraded: bool = False,
) -> ChargeSummary:
    """Build the charge summary and its insight sentences."""

    start_date, end_date = date_range.isoformat()
    currencies = currency_breakdown(charges)
    brands = brand_breakdown(charges) if provider == "card" else []
    products = product_breakdown(charges)
    totals = metadata_totals(charges)
    refunded = sum(1 for charge in charges if is_refunded(charge))

    summary = ChargeSummary(
        provider=provider,
        start_date=start_date,
        end_date=end_date,
        total_count=len(charges),
        refunded_count=refunded,
        currency_breakdown=currencies,
        brand_breakdown=brands,
        top_products=products,
        metadata_totals=totals,
        insights=[],
        degraded=degraded,
    )
    summary.insights.extend(charge_summary_insights(summary))
    return summary


def summarize_top_customers(
    provider: Provider,
    date_range: DateRange,
    charges: Sequence[LedgerCharge],
    limit: int = 5,
    *,
    degraded: bool = False,
) -> TopCustomersSummary:
    """Return the ``limit`` largest customers (1-50) and their insights."""

    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_TOP_CUSTOMERS:
        raise ValueError(f"limit must be between 1 and {MAX_TOP_CUSTOMERS}, received: {limit!r}")

    start_date, end_date = date_range.isoformat()
    customers = customer_breakdown(charges)
    summary = TopCustomersSummary(
        provider=provider,
        start_date=start_date,
        end_date=end_date,
        total_customers=len(customers),
        top_customers=customers[:limit],
        insights=[],
        degraded=degraded,
    )
    summary.insights.extend(top_customer_insights(summary, limit))
    return summary
