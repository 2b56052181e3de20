"""Tests for the public package API exports."""

from typing import get_args

import structlog

import ga4attribution
from ga4attribution import GA4Attribution, InvalidRange, NoRateAvailable, ServiceUnavailable
from ga4attribution.core.types import SourceType
from ga4attribution.errors import GA4AttributionError, MissingCredential, UnreachableService
from ga4attribution.logs import configure_logging


def test_top_level_exports() -> None:
    """The main entry points should be importable from the package root."""

    for name in ga4attribution.__all__:
        assert hasattr(ga4attribution, name), name
    assert isinstance(ga4attribution.__version__, str)
    assert GA4Attribution.__module__ == "ga4attribution.core.client"


def test_error_taxonomy() -> None:
    assert issubclass(InvalidRange, ValueError)
    assert issubclass(NoRateAvailable, LookupError)
    assert issubclass(MissingCredential, ServiceUnavailable)
    assert issubclass(UnreachableService, ServiceUnavailable)
    assert issubclass(ServiceUnavailable, GA4AttributionError)
    assert UnreachableService("paypal", "down").service == "paypal"


def test_source_types() -> None:
    assert get_args(SourceType) == ("session_start", "first_pageview_utm", "referrer", "direct")


def test_configure_logging_switches_renderer() -> None:
    try:
        configure_logging(debug=True)
        assert isinstance(structlog.get_config()["processors"][-1], structlog.dev.ConsoleRenderer)
        configure_logging(debug=False)
        assert isinstance(structlog.get_config()["processors"][-1], structlog.processors.JSONRenderer)
    finally:
        structlog.reset_defaults()
