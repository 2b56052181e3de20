"""Primary client for purchase and session analytics over a GA4 export."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, fields
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Literal, Sequence

import pandas as pd
import structlog
from google.cloud import bigquery

from .attribution import AttributionResolver
from .dates import DateRange, resolve_date_range
from .pagination import (
    DEFAULT_LIMIT,
    DEFAULT_PAGE,
    DEFAULT_PAGE_SIZE,
    PageRequest,
    accumulate_pages,
    truncate_record,
)
from .purchases import extract_purchases, join_sessions
from .reader import PURCHASE_EVENT_PARAM_KEYS, EventReader
from .sessions import SessionReconstructor
from .types import PurchaseSessionRecord, Session

if TYPE_CHECKING:
    from ..config import Settings

__all__ = ["GA4Attribution", "records_to_dataframe"]

logger = structlog.get_logger(__name__)

Environment = Literal["default", "dev"]


def records_to_dataframe(records: Sequence[PurchaseSessionRecord]) -> pd.DataFrame:
    """Return purchase-session records as a dataframe with one column per field."""

    columns = [field_.name for field_ in fields(PurchaseSessionRecord)]
    return pd.DataFrame([asdict(record) for record in records], columns=columns)


class GA4Attribution:
    """Session reconstruction and purchase attribution over a GA4 BigQuery export."""

    def __init__(
        self,
        table_id: str,
        *,
        tz: str = "UTC",
        dev_table_id: str | None = None,
        owned_domains: Iterable[str] = (),
        client: bigquery.Client | None = None,
    ) -> None:
        self.table_id = table_id
        self.dev_table_id = dev_table_id or table_id
        self.tz = tz
        self.client = client or bigquery.Client()
        self.resolver = AttributionResolver(owned_domains)
        self.reconstructor = SessionReconstructor(self.resolver, tz=tz)

    @classmethod
    def from_settings(
        cls, settings: "Settings", *, client: bigquery.Client | None = None
    ) -> "GA4Attribution":
        from ..credentials import bigquery_client_from_settings

        if not settings.bigquery_events_table:
            raise ValueError("BIGQUERY_EVENTS_TABLE must be configured")
        return cls(
            settings.bigquery_events_table,
            tz=settings.events_timezone,
            dev_table_id=settings.bigquery_dev_events_table,
            owned_domains=settings.owned_domains,
            client=client or bigquery_client_from_settings(settings),
        )

    def reader(self, environment: Environment = "default") -> EventReader:
        if environment not in ("default", "dev"):
            raise ValueError("environment must be one of: 'default', 'dev'")
        table_id = self.dev_table_id if environment == "dev" else self.table_id
        return EventReader(self.client, table_id, tz=self.tz)

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def request_sessions(
        self,
        *,
        start_date: str | date | None = None,
        end_date: str | date | None = None,
        today: date | None = None,
        environment: Environment = "default",
    ) -> list[Session]:
        """Return every session observed in the resolved date range."""

        start, end = resolve_date_range(start_date, end_date, today=today)
        events = self.reader(environment).read_events(start, end)
        return self.reconstructor.reconstruct(events)

    def request_purchase_sessions(
        self,
        *,
        start_date: str | date | None = None,
        end_date: str | date | None = None,
        limit: int = DEFAULT_LIMIT,
        page: int = DEFAULT_PAGE,
        page_size: int = DEFAULT_PAGE_SIZE,
        fetch_all_pages: bool = True,
        truncate_strings: bool = True,
        environment: Environment = "default",
        today: date | None = None,
    ) -> list[PurchaseSessionRecord]:
        """Return purchases joined to their sessions for a date range.

        With ``fetch_all_pages`` pages of ``page_size`` rows are fetched one
        after another starting at ``page`` until ``limit`` rows are collected
        or the source runs dry.  Otherwise a single query returns at most
        ``limit`` rows starting at offset ``(page - 1) * page_size``.
        """

        date_range = resolve_date_range(start_date, end_date, today=today)
        request = PageRequest(limit=limit, page=page, page_size=page_size)
        reader = self.reader(environment)
        ingested_at = self._now()

        def fetch(page_limit: int, offset: int) -> list[PurchaseSessionRecord]:
            return self._fetch_purchase_sessions(
                reader,
                date_range,
                limit=page_limit,
                offset=offset,
                ingested_at=ingested_at,
            )

        if fetch_all_pages:
            records = accumulate_pages(fetch, request)
        else:
            records = fetch(request.limit, request.offset)

        logger.info(
            "purchase_sessions_fetched",
            start=date_range.start.isoformat(),
            end=date_range.end.isoformat(),
            rows=len(records),
        )
        if truncate_strings:
            records = [truncate_record(record) for record in records]
        return records

    def _fetch_purchase_sessions(
        self,
        reader: EventReader,
        date_range: DateRange,
        *,
        limit: int,
        offset: int,
        ingested_at: datetime,
    ) -> list[PurchaseSessionRecord]:
        start, end = date_range
        purchase_events = reader.read_purchase_page(start, end, limit=limit, offset=offset)
        purchases = extract_purchases(purchase_events, tz=self.tz)
        if not purchases:
            return []

        visitor_ids = sorted({p.user_pseudo_id for p in purchases if p.user_pseudo_id is not None})
        session_events = reader.read_events(start, end, visitor_ids=visitor_ids)
        sessions = self.reconstructor.index(session_events)
        return join_sessions(purchases, sessions, ingested_at=ingested_at)

    def request_purchase_events(
        self,
        *,
        start: date | None = None,
        end: date | None = None,
        environment: Environment = "default",
    ) -> pd.DataFrame:
        """Return purchase event parameters, one row per event.

        Missing bounds leave the range open on that side.
        """

        records = self.reader(environment).read_purchase_params(start, end)
        return pd.DataFrame(records, columns=["event_date", *PURCHASE_EVENT_PARAM_KEYS])

    def request_event_param_keys(
        self,
        event_name: str = "purchase",
        limit: int = 100,
        *,
        environment: Environment = "default",
    ) -> list[str]:
        """Return the distinct parameter keys observed for ``event_name``."""

        return self.reader(environment).read_param_keys(event_name, limit)
