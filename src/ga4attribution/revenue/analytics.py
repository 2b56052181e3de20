"""Revenue summaries across the card and wallet ledgers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

import httpx

from ..core.dates import DateRange, resolve_date_range
from .card import CardLedger
from .ledger import LedgerAdapter
from .rollup import summarize_charges, summarize_top_customers
from .types import ChargeSummary, TopCustomersSummary
from .wallet import WalletLedger

if TYPE_CHECKING:
    from ..config import Settings

__all__ = ["RevenueAnalytics", "RevenueOverview"]


@dataclass(frozen=True)
class RevenueOverview:
    start_date: str
    end_date: str
    card: ChargeSummary
    wallet: ChargeSummary


class RevenueAnalytics:
    """Charge summaries and top-customer rollups per ledger."""

    def __init__(self, card: LedgerAdapter, wallet: LedgerAdapter) -> None:
        self.ledgers = {"card": card, "wallet": wallet}

    @classmethod
    def from_settings(cls, settings: "Settings", *, http: httpx.Client | None = None) -> "RevenueAnalytics":
        return cls(
            CardLedger.from_settings(settings, http=http),
            WalletLedger.from_settings(settings, http=http),
        )

    def close(self) -> None:
        for ledger in self.ledgers.values():
            ledger.close()

    def __enter__(self) -> "RevenueAnalytics":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _ledger(self, provider: str) -> LedgerAdapter:
        try:
            return self.ledgers[provider]
        except KeyError:
            raise ValueError(f"provider must be 'card' or 'wallet', received: {provider!r}") from None

    def charge_summary(
        self,
        provider: str,
        start_date: str | date | None = None,
        end_date: str | date | None = None,
        *,
        today: date | None = None,
    ) -> ChargeSummary:
        ledger = self._ledger(provider)
        date_range = resolve_date_range(start_date, end_date, today=today)
        return self._summarize(ledger, date_range)

    def top_customers(
        self,
        provider: str,
        start_date: str | date | None = None,
        end_date: str | date | None = None,
        limit: int = 5,
        *,
        today: date | None = None,
    ) -> TopCustomersSummary:
        ledger = self._ledger(provider)
        date_range = resolve_date_range(start_date, end_date, today=today)
        batch = ledger.fetch(date_range)
        return summarize_top_customers(ledger.provider, date_range, batch.charges, limit, degraded=batch.degraded)

    def overview(
        self,
        start_date: str | date | None = None,
        end_date: str | date | None = None,
        *,
        today: date | None = None,
    ) -> RevenueOverview:
        """Summarize both ledgers over one resolved range."""

        date_range = resolve_date_range(start_date, end_date, today=today)
        start, end = date_range.isoformat()
        return RevenueOverview(
            start_date=start,
            end_date=end,
            card=self._summarize(self.ledgers["card"], date_range),
            wallet=self._summarize(self.ledgers["wallet"], date_range),
        )

    @staticmethod
    def _summarize(ledger: LedgerAdapter, date_range: DateRange) -> ChargeSummary:
        batch = ledger.fetch(date_range)
        return summarize_charges(ledger.provider, date_range, batch.charges, degraded=batch.degraded)
