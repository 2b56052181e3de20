"""Plain-language insight sentences derived from rollup aggregates."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from .currency import round_major
from .types import ChargeSummary, Provider, TopCustomersSummary

__all__ = [
    "charge_summary_insights",
    "format_major",
    "format_percentage",
    "top_customer_insights",
]


@dataclass(frozen=True)
class _Vocabulary:
    charges: str
    customers: str
    refunded: str
    volume: str
    no_charges: str
    no_customers: str


_VOCABULARY: dict[str, _Vocabulary] = {
    "card": _Vocabulary(
        charges="charges",
        customers="customers",
        refunded="were refunded",
        volume="charge volume",
        no_charges="No successful charges were recorded between {start} and {end}.",
        no_customers="No customer activity detected between {start} and {end}.",
    ),
    "wallet": _Vocabulary(
        charges="PayPal transactions",
        customers="PayPal customers",
        refunded="were refunded or reversed",
        volume="PayPal volume",
        no_charges="No PayPal transactions recorded between {start} and {end}.",
        no_customers="No PayPal customer activity detected between {start} and {end}.",
    ),
}


def format_major(value: float) -> str:
    return f"{value:,.2f}"


def format_percentage(value: float) -> str:
    return f"{value:.1f}%"


def _metadata_highlights(totals: Mapping[str, float], top: int = 2) -> str | None:
    entries = sorted(
        ((key, value) for key, value in totals.items() if value != 0),
        key=lambda entry: abs(entry[1]),
        reverse=True,
    )
    if not entries:
        return None
    return ", ".join(f"{key}: {format_major(value)}" for key, value in entries[:top])


def charge_summary_insights(summary: ChargeSummary) -> list[str]:
    words = _VOCABULARY[summary.provider]
    if summary.total_count == 0:
        return [words.no_charges.format(start=summary.start_date, end=summary.end_date)]

    refund_rate = summary.refunded_count / summary.total_count * 100
    insights = [
        f"Processed {summary.total_count} {words.charges} from {summary.start_date} to "
        f"{summary.end_date}; {summary.refunded_count} ({format_percentage(refund_rate)}) "
        f"{words.refunded}."
    ]

    if summary.currency_breakdown:
        lead = summary.currency_breakdown[0]
        if lead.avg_ticket_major is not None:
            average = f"{format_major(lead.avg_ticket_major)} average ticket"
        else:
            average = "average ticket unavailable"
        unit = "charges" if summary.provider == "card" else "transactions"
        insights.append(
            f"{lead.currency} led {words.volume} with {lead.count} {unit} totaling "
            f"{format_major(lead.gross_major)}; {average}."
        )

    if summary.brand_breakdown:
        brand = summary.brand_breakdown[0]
        insights.append(
            f"{brand.brand} cards contributed {format_major(brand.gross_major)} "
            f"across {brand.count} charges."
        )

    if summary.top_products:
        product = summary.top_products[0]
        insights.append(
            f"{product.product_name} was the top product with "
            f"{format_major(product.gross_major)} over {product.count} charges."
        )

    highlights = _metadata_highlights(summary.metadata_totals)
    if highlights:
        insights.append(f"Metadata totals highlight {highlights}.")

    return insights


def top_customer_insights(summary: TopCustomersSummary, limit: int) -> list[str]:
    provider: Provider = summary.provider
    words = _VOCABULARY[provider]
    if summary.total_customers == 0:
        return [words.no_customers.format(start=summary.start_date, end=summary.end_date)]

    shown = len(summary.top_customers)
    shown_gross = round_major(sum(customer.gross_major for customer in summary.top_customers))
    insights = [
        f"{summary.total_customers} {words.customers} transacted between {summary.start_date} "
        f"and {summary.end_date}; top {shown} accounted for {format_major(shown_gross)}."
    ]

    if summary.top_customers:
        leader = summary.top_customers[0]
        unit = "charges" if provider == "card" else "transactions"
        insights.append(
            f"Top customer {leader.customer_key} generated {format_major(leader.gross_major)} "
            f"across {leader.count} {unit}; last purchase on {leader.last_charge_at.date().isoformat()}."
        )
        if leader.currency_breakdown:
            currency = leader.currency_breakdown[0]
            insights.append(
                f"{leader.customer_key} primarily paid in {currency.currency} totaling "
                f"{format_major(currency.gross_major)}."
            )
        highlights = _metadata_highlights(leader.metadata_totals)
        if highlights:
            insights.append(f"Key metadata for {leader.customer_key}: {highlights}.")

    if summary.total_customers > shown:
        insights.append(f"Only top {shown} of {summary.total_customers} customers shown (limit {limit}).")

    return insights
