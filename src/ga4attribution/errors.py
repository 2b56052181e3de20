"""Exception hierarchy shared by the warehouse and ledger layers."""

from __future__ import annotations

__all__ = [
    "GA4AttributionError",
    "InvalidRange",
    "MalformedSourceCredential",
    "MissingCredential",
    "NoRateAvailable",
    "ServiceUnavailable",
    "UnreachableService",
]


class GA4AttributionError(Exception):
    """Base class for every error raised by this package."""


class InvalidRange(GA4AttributionError, ValueError):
    """A requested date range is malformed, reversed or in the future."""


class ServiceUnavailable(GA4AttributionError):
    """An upstream ledger or FX service could not be used."""

    def __init__(self, service: str, message: str) -> None:
        super().__init__(f"{service}: {message}")
        self.service = service


class MissingCredential(ServiceUnavailable):
    """Credentials required to call ``service`` are absent or were rejected."""


class UnreachableService(ServiceUnavailable):
    """The upstream service failed at the transport or HTTP level."""


class NoRateAvailable(GA4AttributionError, LookupError):
    """No FX rate is known for the requested currency."""

    def __init__(self, currency: str, base: str) -> None:
        super().__init__(
            f"No {base} conversion rate available for {currency}. "
            "Provide override_rates or check the FX service."
        )
        self.currency = currency
        self.base = base


class MalformedSourceCredential(GA4AttributionError, ValueError):
    """Service-account configuration could not be parsed."""
