"""Public package API."""

from importlib import metadata

from .core import GA4Attribution, PurchaseSessionRecord, Session, records_to_dataframe
from .errors import (
    GA4AttributionError,
    InvalidRange,
    MalformedSourceCredential,
    MissingCredential,
    NoRateAvailable,
    ServiceUnavailable,
    UnreachableService,
)
from .revenue import CardLedger, CurrencyConverter, RevenueAnalytics, WalletLedger

__all__ = [
    "CardLedger",
    "CurrencyConverter",
    "GA4Attribution",
    "GA4AttributionError",
    "InvalidRange",
    "MalformedSourceCredential",
    "MissingCredential",
    "NoRateAvailable",
    "PurchaseSessionRecord",
    "RevenueAnalytics",
    "ServiceUnavailable",
    "Session",
    "UnreachableService",
    "WalletLedger",
    "records_to_dataframe",
]

try:
    __version__ = metadata.version("ga4attribution")
except (
    metadata.PackageNotFoundError
):  # pragma: no cover - fallback for editable installs
    __version__ = "0.0.0"
