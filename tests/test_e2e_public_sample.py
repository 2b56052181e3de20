from __future__ import annotations

from datetime import date

import pytest
from google.cloud import bigquery
from google.api_core import exceptions as gcore_exc
from google.auth import exceptions as auth_exc

from ga4attribution import GA4Attribution


def _client() -> GA4Attribution:
    try:
        client = bigquery.Client()
    except (
        auth_exc.DefaultCredentialsError,
        auth_exc.RefreshError,
        gcore_exc.Unauthenticated,
        gcore_exc.PermissionDenied,
        gcore_exc.Forbidden,
    ) as e:
        pytest.skip(f"Skipping E2E due to Google auth error: {e}")

    return GA4Attribution(
        table_id="bigquery-public-data.ga4_obfuscated_sample_ecommerce.events_*",
        tz="America/Los_Angeles",
        client=client,
    )


def test_public_sample_page_view_param_keys() -> None:
    ga = _client()

    keys = ga.request_event_param_keys("page_view", limit=100)

    assert "page_location" in keys
    assert "ga_session_id" in keys


def test_public_sample_purchase_sessions() -> None:
    ga = _client()

    records = ga.request_purchase_sessions(
        start_date="2020-11-01",
        end_date="2020-11-02",
        limit=5,
        fetch_all_pages=False,
        today=date(2021, 1, 31),
    )

    assert 0 < len(records) <= 5
    assert all(record.transaction_id for record in records)
    assert all(record.ingested_at for record in records)
