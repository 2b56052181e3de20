from .client import GA4Attribution, records_to_dataframe
from .dates import DateRange, resolve_date_range
from .types import AttributionVerdict, Event, Purchase, PurchaseSessionRecord, Session

__all__ = [
    "AttributionVerdict",
    "DateRange",
    "Event",
    "GA4Attribution",
    "Purchase",
    "PurchaseSessionRecord",
    "Session",
    "records_to_dataframe",
    "resolve_date_range",
]
