"""Range queries against a GA4 export table."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date, datetime, timedelta, timezone
from typing import Any

import structlog
from google.cloud import bigquery

from .dates import _table_suffix_condition
from .params import parse_event_params
from .sql import BoundQuery, QueryParam, param_exists_condition
from .types import DeviceInfo, Event, GeoInfo, Item

__all__ = ["EventReader", "PURCHASE_EVENT_PARAM_KEYS", "event_from_row"]

logger = structlog.get_logger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

PURCHASE_EVENT_PARAM_KEYS = (
    "transaction_id",
    "ignore_referrer",
    "session_engaged",
    "page_referrer",
    "customer_email",
    "ga_session_id",
    "currency",
    "engagement_time_msec",
    "page_path",
    "debug_mode",
    "page_location",
    "batch_page_id",
    "batch_ordering_id",
    "is_allow_cookies",
    "engaged_session_event",
    "customer_id",
    "unique_order_id",
    "order_discount_usd",
    "affiliation",
    "coupon",
    "order_promo_code",
    "value_usd",
    "user_type",
    "custom_profile_id",
    "value",
    "page_title",
    "ga_session_number",
    "payment_type",
    "customer_status",
)

_EVENT_COLUMNS = """
  e.event_timestamp,
  e.event_name,
  e.user_pseudo_id,
  e.user_id,
  e.event_params,
  e.items,
  e.device.category AS device_category,
  e.device.operating_system AS device_operating_system,
  e.device.web_info.browser AS device_browser,
  e.geo.country AS geo_country,
  e.geo.region AS geo_region,
  e.geo.city AS geo_city"""

_LOCAL_DATE = "DATE(TIMESTAMP_MICROS(e.event_timestamp), @tz)"

_PARAM_KEYS_TEMPLATE = """
SELECT DISTINCT ep.key
FROM {table},
UNNEST(event_params) AS ep
WHERE event_name = @eventName"""

_PURCHASE_PARAMS_TEMPLATE = """
SELECT
  FORMAT_DATE('%Y-%m-%d', PARSE_DATE('%Y%m%d', event_date)) AS event_date,
  event_params
FROM {table}
WHERE event_name = @eventName
  AND (@startDate IS NULL OR PARSE_DATE('%Y%m%d', event_date) >= @startDate)
  AND (@endDate IS NULL OR PARSE_DATE('%Y%m%d', event_date) <= @endDate)"""


def _timestamp_from_micros(value: int) -> datetime:
    return _EPOCH + timedelta(microseconds=int(value))


def _items_from_row(records: Sequence[Mapping[str, Any]] | None) -> tuple[Item, ...]:
    items = []
    for record in records or ():
        quantity = record.get("quantity")
        items.append(
            Item(
                item_id=record.get("item_id"),
                item_name=record.get("item_name"),
                quantity=int(quantity) if quantity is not None else None,
            )
        )
    return tuple(items)


def event_from_row(row: Mapping[str, Any]) -> Event:
    """Convert a warehouse row produced by :class:`EventReader` to an :class:`Event`."""

    params = parse_event_params(row.get("event_params"))
    session_param = params.get("ga_session_id")
    return Event(
        visitor_id=row.get("user_pseudo_id"),
        session_id=session_param.as_int() if session_param is not None else None,
        timestamp=_timestamp_from_micros(row["event_timestamp"]),
        name=row["event_name"],
        params=params,
        device=DeviceInfo(
            category=row.get("device_category"),
            operating_system=row.get("device_operating_system"),
            browser=row.get("device_browser"),
        ),
        geo=GeoInfo(
            country=row.get("geo_country"),
            region=row.get("geo_region"),
            city=row.get("geo_city"),
        ),
        user_id=row.get("user_id"),
        items=_items_from_row(row.get("items")),
    )


class EventReader:
    """Issue parameterized event queries against ``table_id``.

    Dates are compared in the reporting timezone ``tz``.  Either bound may be
    ``None``, which leaves the range open on that side.
    """

    def __init__(self, client: bigquery.Client, table_id: str, *, tz: str = "UTC") -> None:
        self.client = client
        self.table_id = table_id
        self.tz = tz

    def _run(self, query: BoundQuery) -> list[Any]:
        """Execute ``query`` and return its rows."""

        sql = query.render()
        logger.debug(
            "warehouse_query",
            table_id=query.table_id,
            params=[param.name for param in query.query_parameters()],
        )
        return list(self.client.query(sql, job_config=query.job_config()).result())

    def _range_params(self, start: date | None, end: date | None) -> list[QueryParam]:
        return [
            QueryParam("tz", "STRING", self.tz),
            QueryParam("startDate", "DATE", start),
            QueryParam("endDate", "DATE", end),
        ]

    def _range_conditions(self, start: date | None, end: date | None) -> list[str]:
        conditions = [
            f"(@startDate IS NULL OR {_LOCAL_DATE} >= @startDate)",
            f"(@endDate IS NULL OR {_LOCAL_DATE} <= @endDate)",
        ]
        suffix = _table_suffix_condition(self.table_id, start, end)
        if suffix:
            conditions.insert(0, suffix)
        return conditions

    def _events_query(
        self,
        start: date | None,
        end: date | None,
        *,
        event_name: str | None = None,
        visitor_ids: Sequence[str] | None = None,
        require_transaction: bool = False,
        limit: int | None = None,
        offset: int | None = None,
    ) -> BoundQuery:
        params = self._range_params(start, end)
        conditions = []
        if event_name is not None:
            conditions.append("e.event_name = @eventName")
            params.append(QueryParam("eventName", "STRING", event_name))
        if require_transaction:
            conditions.append(param_exists_condition("transaction_id"))
        if visitor_ids is not None:
            conditions.append("e.user_pseudo_id IN UNNEST(@visitorIds)")
            params.append(QueryParam("visitorIds", "STRING", tuple(visitor_ids), array=True))
        conditions.extend(self._range_conditions(start, end))

        where = "\n  AND ".join(conditions)
        template = (
            f"\nSELECT{_EVENT_COLUMNS}\nFROM {{table}} AS e\nWHERE {where}\n"
            "ORDER BY e.event_timestamp, e.user_pseudo_id"
        )
        return BoundQuery(template, self.table_id, tuple(params), limit=limit, offset=offset)

    def read_events(
        self,
        start: date | None,
        end: date | None,
        *,
        event_name: str | None = None,
        visitor_ids: Sequence[str] | None = None,
    ) -> list[Event]:
        """Return every event in range, optionally narrowed by name or visitor."""

        if visitor_ids is not None and not visitor_ids:
            return []
        query = self._events_query(start, end, event_name=event_name, visitor_ids=visitor_ids)
        return [event_from_row(row) for row in self._run(query)]

    def read_purchase_page(
        self,
        start: date | None,
        end: date | None,
        *,
        limit: int,
        offset: int = 0,
    ) -> list[Event]:
        """Return one page of purchase events carrying a transaction id."""

        query = self._events_query(
            start,
            end,
            event_name="purchase",
            require_transaction=True,
            limit=limit,
            offset=offset,
        )
        return [event_from_row(row) for row in self._run(query)]

    def read_param_keys(self, event_name: str = "purchase", limit: int = 100) -> list[str]:
        """Return the distinct parameter keys observed for ``event_name``."""

        query = BoundQuery(
            _PARAM_KEYS_TEMPLATE,
            self.table_id,
            (QueryParam("eventName", "STRING", event_name),),
            limit=limit,
        )
        return [row["key"] for row in self._run(query) if row["key"]]

    def read_purchase_params(self, start: date | None, end: date | None) -> list[dict[str, Any]]:
        """Return purchase events' whitelisted parameter values keyed by name."""

        query = BoundQuery(
            _PURCHASE_PARAMS_TEMPLATE,
            self.table_id,
            (
                QueryParam("eventName", "STRING", "purchase"),
                QueryParam("startDate", "DATE", start),
                QueryParam("endDate", "DATE", end),
            ),
        )
        records = []
        for row in self._run(query):
            params = parse_event_params(row.get("event_params"))
            record: dict[str, Any] = {"event_date": row["event_date"]}
            for key in PURCHASE_EVENT_PARAM_KEYS:
                if key in params:
                    record[key] = params[key].as_python()
            records.append(record)
        return records
