from __future__ import annotations

from datetime import date, datetime, timezone

import httpx
import pytest

from ga4attribution.config import Settings
from ga4attribution.core.dates import DateRange
from ga4attribution.errors import InvalidRange, UnreachableService
from ga4attribution.revenue.analytics import RevenueAnalytics
from ga4attribution.revenue.card import CardLedger
from ga4attribution.revenue.ledger import LedgerAdapter
from ga4attribution.revenue.types import LedgerCharge
from ga4attribution.revenue.wallet import WalletLedger

TODAY = date(2024, 6, 10)


class _StaticLedger(LedgerAdapter):
    service = "static"

    def __init__(self, provider: str, charges: list[LedgerCharge]) -> None:
        self.provider = provider  # type: ignore[misc]
        self.charges = charges
        self.ranges: list[DateRange] = []

    def fetch_charges(self, date_range: DateRange) -> list[LedgerCharge]:
        self.ranges.append(date_range)
        return self.charges


def _charge(charge_id: str, customer: str, amount: int) -> LedgerCharge:
    return LedgerCharge(
        id=charge_id,
        provider="card",
        amount_minor=amount,
        currency="USD",
        status="succeeded",
        refunded=False,
        created_at=datetime(2024, 6, 5, tzinfo=timezone.utc),
        customer_key=customer,
    )


def test_charge_summary_resolves_default_window() -> None:
    card = _StaticLedger("card", [_charge("ch_1", "cus_a", 1000)])
    analytics = RevenueAnalytics(card, _StaticLedger("wallet", []))

    summary = analytics.charge_summary("card", today=TODAY)

    assert card.ranges == [DateRange(date(2024, 6, 4), date(2024, 6, 10))]
    assert (summary.start_date, summary.end_date) == ("2024-06-04", "2024-06-10")
    assert summary.total_count == 1


def test_top_customers_passes_limit() -> None:
    card = _StaticLedger("card", [_charge("ch_1", "cus_a", 1000), _charge("ch_2", "cus_b", 3000)])
    analytics = RevenueAnalytics(card, _StaticLedger("wallet", []))

    summary = analytics.top_customers("card", "2024-06-01", limit=1, today=TODAY)

    assert [c.customer_key for c in summary.top_customers] == ["cus_b"]
    assert summary.total_customers == 2


def test_unknown_provider_and_bad_range_are_rejected() -> None:
    analytics = RevenueAnalytics(_StaticLedger("card", []), _StaticLedger("wallet", []))

    with pytest.raises(ValueError, match="provider"):
        analytics.charge_summary("cash", today=TODAY)
    with pytest.raises(InvalidRange):
        analytics.charge_summary("card", "2024-06-09", "2024-06-01", today=TODAY)


def _settings(**overrides: object) -> Settings:
    values = {
        "stripe_api_key": "sk_test",
        "paypal_client_id": "id",
        "paypal_client_secret": "secret",
        "http_timeout_seconds": 5.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def test_overview_degrades_wallet_but_keeps_card() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.stripe.com":
            return httpx.Response(200, json={"data": [{"id": "ch_1", "amount": 500, "currency": "usd", "status": "succeeded", "created": 1717243200}], "has_more": False})
        return httpx.Response(502, text="bad gateway")

    http = httpx.Client(transport=httpx.MockTransport(handler))
    analytics = RevenueAnalytics.from_settings(_settings(), http=http)

    overview = analytics.overview("2024-06-01", "2024-06-07", today=TODAY)

    assert isinstance(analytics.ledgers["card"], CardLedger)
    assert isinstance(analytics.ledgers["wallet"], WalletLedger)
    assert overview.card.total_count == 1
    assert not overview.card.degraded
    assert overview.wallet.degraded
    assert overview.wallet.insights == ["No PayPal transactions recorded between 2024-06-01 and 2024-06-07."]


def test_overview_propagates_card_failures() -> None:
    http = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    analytics = RevenueAnalytics.from_settings(_settings(), http=http)

    with pytest.raises(UnreachableService):
        analytics.overview(today=TODAY)


def test_close_releases_ledger_clients() -> None:
    with RevenueAnalytics.from_settings(_settings()) as analytics:
        clients = [ledger.http for ledger in analytics.ledgers.values()]
        assert not any(client.is_closed for client in clients)

    assert all(client.is_closed for client in clients)
