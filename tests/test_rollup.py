from __future__ import annotations

from datetime import date, datetime, timezone

import pandas as pd
import pytest

from ga4attribution.core.dates import DateRange
from ga4attribution.revenue.rollup import (
    brand_breakdown,
    currency_breakdown,
    customer_breakdown,
    is_refunded,
    metadata_totals,
    product_breakdown,
    summarize_charges,
    summarize_top_customers,
)
from ga4attribution.revenue.types import LedgerCharge

WINDOW = DateRange(date(2024, 6, 1), date(2024, 6, 7))


def _charge(
    charge_id: str,
    amount_minor: int,
    currency: str = "usd",
    *,
    customer: str = "cus_a",
    day: int = 1,
    refunded: bool = False,
    status: str | None = "succeeded",
    brand: str | None = "visa",
    metadata: dict[str, str] | None = None,
    amounts: dict[str, float] | None = None,
) -> LedgerCharge:
    return LedgerCharge(
        id=charge_id,
        provider="card",
        amount_minor=amount_minor,
        currency=currency,
        status=status,
        refunded=refunded,
        created_at=datetime(2024, 6, day, 12, tzinfo=timezone.utc),
        customer_key=customer,
        metadata=metadata or {},
        metadata_amounts=amounts or {},
        card_brand=brand,
    )


CHARGES = [
    _charge("ch_1", 1050, customer="cus_a", day=1, metadata={"product_name": "Tour"}, amounts={"gross": 10.5}),
    _charge("ch_2", 2000, "jpy", customer="cus_b", day=2, brand="mastercard"),
    _charge("ch_3", 4000, customer="cus_a", day=3, refunded=True, metadata={"product_name": "Tour"}, amounts={"gross": 40.0, "fee": -1.2}),
    _charge("ch_4", 500, "eur", customer="cus_c", day=2, brand=None, metadata={"product_name": "Class"}),
]


@pytest.mark.parametrize(
    ("refunded", "status", "expected"),
    [
        (True, "succeeded", True),
        (False, "partially_refunded", True),
        (False, "REVERSED", True),
        (False, "cancelled", True),
        (False, "S", False),
        (False, None, False),
    ],
)
def test_refund_vocabulary(refunded: bool, status: str | None, expected: bool) -> None:
    assert is_refunded(_charge("ch", 100, refunded=refunded, status=status)) is expected


def test_currency_breakdown_sorted_by_gross_major() -> None:
    rows = currency_breakdown(CHARGES)

    assert [row.currency for row in rows] == ["JPY", "USD", "EUR"]
    jpy, usd, eur = rows
    assert (jpy.count, jpy.gross_minor, jpy.gross_major, jpy.avg_ticket_major) == (1, 2000, 2000.0, 2000.0)
    assert (usd.count, usd.refunded_count, usd.gross_minor, usd.gross_major) == (2, 1, 5050, 50.5)
    assert usd.avg_ticket_major == 25.25
    assert eur.gross_major == 5.0


def test_currency_breakdown_merges_case_variants_and_keeps_tie_order() -> None:
    rows = currency_breakdown([_charge("a", 100, "gbp"), _charge("b", 100, "GBP"), _charge("c", 200, "chf")])

    assert [(row.currency, row.count) for row in rows] == [("GBP", 2), ("CHF", 1)]


def test_brand_and_product_breakdowns() -> None:
    brands = brand_breakdown(CHARGES)
    products = product_breakdown(CHARGES)

    assert [(b.brand, b.count) for b in brands] == [("mastercard", 1), ("visa", 2), ("unknown", 1)]
    assert brands[1].gross_major == 50.5
    assert [(p.product_name, p.count, p.gross_major) for p in products] == [("Tour", 2, 50.5), ("Class", 1, 5.0)]


def test_product_breakdown_keeps_top_ten() -> None:
    charges = [_charge(f"ch_{i}", 100 * (i + 1), metadata={"product_name": f"P{i}"}) for i in range(12)]

    products = product_breakdown(charges)

    assert len(products) == 10
    assert products[0].product_name == "P11"


def test_metadata_totals() -> None:
    assert metadata_totals(CHARGES) == {"gross": 50.5, "fee": -1.2}


def test_customer_breakdown_tracks_latest_charge() -> None:
    customers = customer_breakdown(CHARGES)

    assert [c.customer_key for c in customers] == ["cus_b", "cus_a", "cus_c"]
    cus_a = customers[1]
    assert (cus_a.count, cus_a.gross_minor, cus_a.gross_major) == (2, 5050, 50.5)
    assert cus_a.last_charge_id == "ch_3"
    assert [row.currency for row in cus_a.currency_breakdown] == ["USD"]
    assert cus_a.metadata_totals == {"gross": 50.5, "fee": -1.2}


def test_charge_summary_and_insights() -> None:
    summary = summarize_charges("card", WINDOW, CHARGES)

    assert (summary.start_date, summary.end_date) == ("2024-06-01", "2024-06-07")
    assert (summary.total_count, summary.refunded_count) == (4, 1)
    assert summary.insights == [
        "Processed 4 charges from 2024-06-01 to 2024-06-07; 1 (25.0%) were refunded.",
        "JPY led charge volume with 1 charges totaling 2,000.00; 2,000.00 average ticket.",
        "mastercard cards contributed 2,000.00 across 1 charges.",
        "Tour was the top product with 50.50 over 2 charges.",
        "Metadata totals highlight gross: 50.50, fee: -1.20.",
    ]
    frame = summary.to_dataframe()
    assert isinstance(frame, pd.DataFrame)
    assert list(frame.index) == ["JPY", "USD", "EUR"]


def test_wallet_summary_uses_wallet_vocabulary() -> None:
    charges = [
        LedgerCharge(
            id="TX1",
            provider="wallet",
            amount_minor=1234,
            currency="USD",
            status="V",
            refunded=False,
            created_at=datetime(2024, 6, 2, tzinfo=timezone.utc),
            customer_key="buyer@example.com",
        )
    ]

    summary = summarize_charges("wallet", WINDOW, charges)

    assert summary.brand_breakdown == []
    assert summary.insights[0] == (
        "Processed 1 PayPal transactions from 2024-06-01 to 2024-06-07; 0 (0.0%) were refunded or reversed."
    )
    assert summary.insights[1] == "USD led PayPal volume with 1 transactions totaling 12.34; 12.34 average ticket."


def test_empty_charge_summary_has_single_sentinel_insight() -> None:
    summary = summarize_charges("card", WINDOW, [])

    assert summary.total_count == 0
    assert summary.currency_breakdown == []
    assert summary.brand_breakdown == []
    assert summary.top_products == []
    assert summary.metadata_totals == {}
    assert summary.insights == ["No successful charges were recorded between 2024-06-01 and 2024-06-07."]
    assert summary.to_dataframe().empty


def test_empty_top_customers() -> None:
    summary = summarize_top_customers("wallet", WINDOW, [], limit=5)

    assert summary.total_customers == 0
    assert summary.top_customers == []
    assert summary.insights == ["No PayPal customer activity detected between 2024-06-01 and 2024-06-07."]


def test_top_customers_limit_and_insights() -> None:
    summary = summarize_top_customers("card", WINDOW, CHARGES, limit=1)

    assert summary.total_customers == 3
    assert [c.customer_key for c in summary.top_customers] == ["cus_b"]
    assert summary.insights == [
        "3 customers transacted between 2024-06-01 and 2024-06-07; top 1 accounted for 2,000.00.",
        "Top customer cus_b generated 2,000.00 across 1 charges; last purchase on 2024-06-02.",
        "cus_b primarily paid in JPY totaling 2,000.00.",
        "Only top 1 of 3 customers shown (limit 1).",
    ]
    assert list(summary.to_dataframe().index) == ["cus_b"]


@pytest.mark.parametrize("limit", [0, 51, -1])
def test_top_customers_rejects_out_of_range_limit(limit: int) -> None:
    with pytest.raises(ValueError, match="between 1 and 50"):
        summarize_top_customers("card", WINDOW, CHARGES, limit=limit)


def test_rollups_are_idempotent() -> None:
    assert summarize_charges("card", WINDOW, CHARGES) == summarize_charges("card", WINDOW, CHARGES)
    assert summarize_top_customers("card", WINDOW, CHARGES, 2) == summarize_top_customers("card", WINDOW, CHARGES, 2)
