"""Snapshot-style tests that assert generated SQL and parameters remain stable."""

from __future__ import annotations

from datetime import date

import pytest
from google.cloud import bigquery

from ga4attribution.core.reader import EventReader
from ga4attribution.core.sql import BoundQuery, QueryParam, param_exists_condition, quote_table


class _CaptureQuery(Exception):
    """Internal helper used to intercept the generated SQL without running it."""

    def __init__(self, query: BoundQuery) -> None:
        super().__init__(query.render())
        self.sql = query.render()
        self.params = {param.name: param.value for param in query.query_parameters()}


class _CaptureReader(EventReader):
    """Reader that raises instead of querying so SQL can be inspected."""

    def _run(self, query: BoundQuery):  # type: ignore[override]
        raise _CaptureQuery(query)


@pytest.fixture
def capture_reader() -> _CaptureReader:
    return _CaptureReader(client=object(), table_id="proj.dataset.events_*", tz="America/New_York")


_COLUMNS = """SELECT
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
  e.geo.city AS geo_city
FROM `proj.dataset.events_*` AS e"""


def test_purchase_page_sql_snapshot(capture_reader: _CaptureReader) -> None:
    with pytest.raises(_CaptureQuery) as captured:
        capture_reader.read_purchase_page(date(2024, 6, 1), date(2024, 6, 7), limit=2, offset=4)

    expected_sql = (
        "\n"
        + _COLUMNS
        + """
WHERE e.event_name = @eventName
  AND EXISTS (SELECT 1 FROM UNNEST(e.event_params) ep WHERE ep.key = 'transaction_id' AND ep.value.string_value IS NOT NULL AND ep.value.string_value != '')
  AND REGEXP_EXTRACT(_TABLE_SUFFIX, r'(\\d+)$') >= '20240531' AND REGEXP_EXTRACT(_TABLE_SUFFIX, r'(\\d+)$') <= '20240608'
  AND (@startDate IS NULL OR DATE(TIMESTAMP_MICROS(e.event_timestamp), @tz) >= @startDate)
  AND (@endDate IS NULL OR DATE(TIMESTAMP_MICROS(e.event_timestamp), @tz) <= @endDate)
ORDER BY e.event_timestamp, e.user_pseudo_id
LIMIT @limit OFFSET @offset
"""
    )

    assert captured.value.sql == expected_sql
    assert captured.value.params == {
        "tz": "America/New_York",
        "startDate": date(2024, 6, 1),
        "endDate": date(2024, 6, 7),
        "eventName": "purchase",
        "limit": 2,
        "offset": 4,
    }


def test_session_events_sql_snapshot(capture_reader: _CaptureReader) -> None:
    with pytest.raises(_CaptureQuery) as captured:
        capture_reader.read_events(None, date(2024, 6, 7), visitor_ids=["v1", "v2"])

    expected_sql = (
        "\n"
        + _COLUMNS
        + """
WHERE e.user_pseudo_id IN UNNEST(@visitorIds)
  AND REGEXP_EXTRACT(_TABLE_SUFFIX, r'(\\d+)$') <= '20240608'
  AND (@startDate IS NULL OR DATE(TIMESTAMP_MICROS(e.event_timestamp), @tz) >= @startDate)
  AND (@endDate IS NULL OR DATE(TIMESTAMP_MICROS(e.event_timestamp), @tz) <= @endDate)
ORDER BY e.event_timestamp, e.user_pseudo_id
"""
    )

    assert captured.value.sql == expected_sql
    assert captured.value.params["visitorIds"] == ("v1", "v2")
    assert captured.value.params["startDate"] is None


def test_read_events_with_no_visitors_skips_query(capture_reader: _CaptureReader) -> None:
    assert capture_reader.read_events(date(2024, 6, 1), date(2024, 6, 7), visitor_ids=[]) == []


def test_param_keys_sql_snapshot(capture_reader: _CaptureReader) -> None:
    with pytest.raises(_CaptureQuery) as captured:
        capture_reader.read_param_keys("page_view", limit=25)

    expected_sql = """
SELECT DISTINCT ep.key
FROM `proj.dataset.events_*`,
UNNEST(event_params) AS ep
WHERE event_name = @eventName
LIMIT @limit
"""

    assert captured.value.sql == expected_sql
    assert captured.value.params == {"eventName": "page_view", "limit": 25}


def test_quote_table_rejects_injection() -> None:
    assert quote_table("proj.dataset.events_20240101") == "`proj.dataset.events_20240101`"
    assert quote_table("dataset.events_*") == "`dataset.events_*`"
    with pytest.raises(ValueError):
        quote_table("proj.dataset.events` WHERE 1=1 --")
    with pytest.raises(ValueError):
        quote_table("events")


def test_param_exists_condition_rejects_unknown_keys() -> None:
    with pytest.raises(ValueError):
        param_exists_condition("x' OR '1'='1")


def test_param_exists_condition_treats_empty_strings_as_absent() -> None:
    assert param_exists_condition("transaction_id") == (
        "EXISTS (SELECT 1 FROM UNNEST(e.event_params) ep WHERE ep.key = 'transaction_id' "
        "AND ep.value.string_value IS NOT NULL AND ep.value.string_value != '')"
    )
    assert param_exists_condition("ga_session_id", column="int_value") == (
        "EXISTS (SELECT 1 FROM UNNEST(e.event_params) ep WHERE ep.key = 'ga_session_id' "
        "AND ep.value.int_value IS NOT NULL)"
    )


def test_bound_query_job_config_carries_typed_parameters() -> None:
    query = BoundQuery(
        "SELECT 1 FROM {table}",
        "proj.dataset.events_*",
        (
            QueryParam("eventName", "STRING", "purchase"),
            QueryParam("visitorIds", "STRING", ("a", "b"), array=True),
        ),
        limit=10,
    )

    config = query.job_config()

    assert query.render() == "SELECT 1 FROM `proj.dataset.events_*`\nLIMIT @limit\n"
    names = [param.name for param in config.query_parameters]
    assert names == ["eventName", "visitorIds", "limit"]
    assert isinstance(config.query_parameters[1], bigquery.ArrayQueryParameter)
    assert config.query_parameters[2].value == 10
