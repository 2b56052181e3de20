"""Public data structures used by the session and purchase engine."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal

from .params import ParamValue

__all__ = [
    "AttributionVerdict",
    "CampaignParams",
    "DeviceInfo",
    "Event",
    "GeoInfo",
    "Item",
    "LandingUtm",
    "Purchase",
    "PurchaseSessionRecord",
    "ReferrerVerdict",
    "Session",
    "SourceType",
    "session_key",
]

SourceType = Literal["session_start", "first_pageview_utm", "referrer", "direct"]

DIRECT_SOURCE = "(direct)"
NO_MEDIUM = "(none)"
CAMPAIGN_NOT_SET = "(not set)"


def session_key(visitor_id: str | None, session_id: int | None) -> str | None:
    """Return the composite ``visitor.session`` join key.

    Both halves must be present; a missing half yields ``None`` so that the
    row can never join to a session.
    """

    if visitor_id is None or session_id is None:
        return None
    return f"{visitor_id}.{session_id}"


@dataclass(frozen=True)
class DeviceInfo:
    category: str | None = None
    operating_system: str | None = None
    browser: str | None = None


@dataclass(frozen=True)
class GeoInfo:
    country: str | None = None
    region: str | None = None
    city: str | None = None


@dataclass(frozen=True)
class Item:
    item_id: str | None = None
    item_name: str | None = None
    quantity: int | None = None


@dataclass(frozen=True)
class Event:
    """A single raw GA4 event."""

    visitor_id: str | None
    session_id: int | None
    timestamp: datetime
    name: str
    params: Mapping[str, ParamValue] = field(default_factory=dict)
    device: DeviceInfo = field(default_factory=DeviceInfo)
    geo: GeoInfo = field(default_factory=GeoInfo)
    user_id: str | None = None
    items: tuple[Item, ...] = ()

    @property
    def session_key(self) -> str | None:
        return session_key(self.visitor_id, self.session_id)


@dataclass(frozen=True)
class CampaignParams:
    """Campaign parameters carried by a session's ``session_start`` event."""

    source: str | None = None
    medium: str | None = None
    campaign: str | None = None
    gclid: str | None = None
    dclid: str | None = None


@dataclass(frozen=True)
class LandingUtm:
    """UTM and click identifiers parsed from the landing page URL."""

    source: str | None = None
    medium: str | None = None
    campaign: str | None = None
    term: str | None = None
    content: str | None = None
    gclid: str | None = None
    dclid: str | None = None


@dataclass(frozen=True)
class ReferrerVerdict:
    url: str
    host: str
    source: str
    medium: Literal["organic", "referral"]


@dataclass(frozen=True)
class AttributionVerdict:
    source_type: SourceType
    source: str = DIRECT_SOURCE
    medium: str = NO_MEDIUM
    campaign: str = CAMPAIGN_NOT_SET
    term: str | None = None
    content: str | None = None
    gclid: str | None = None
    dclid: str | None = None


@dataclass(frozen=True)
class Session:
    """A reconstructed visit keyed by ``(visitor_id, session_id)``."""

    visitor_id: str | None
    session_id: int | None
    user_key: str | None
    start: datetime
    end: datetime
    event_date: date
    event_hour: int
    event_count: int
    pageview_count: int
    engagement_time_msec: int
    is_engaged: bool
    bounce_like: bool
    landing_url: str | None
    landing_title: str | None
    landing_path: str | None
    exit_url: str | None
    start_params: CampaignParams
    landing_utm: LandingUtm
    referrer: ReferrerVerdict | None
    attribution: AttributionVerdict
    device: DeviceInfo
    geo: GeoInfo
    transactions_count: int
    has_session_start: bool

    @property
    def key(self) -> str | None:
        return session_key(self.visitor_id, self.session_id)

    @property
    def duration_sec(self) -> float:
        return (self.end - self.start).total_seconds()

    @property
    def conversion_flag(self) -> bool:
        return self.transactions_count > 0


@dataclass(frozen=True)
class Purchase:
    """Financial and order fields of a single ``purchase`` event."""

    transaction_id: str
    merchant_order_id: str | None
    payment_type: str | None
    currency: str | None
    gross_revenue: float | None
    tax_amount: float | None
    shipping_amount: float | None
    discount_amount: float | None
    coupon_code: str | None
    affiliation: str | None
    user_pseudo_id: str | None
    user_id: str | None
    ga_session_id: int | None
    purchase_ts: datetime
    event_date: date
    items_line_count: int
    items_quantity: int | None
    gclid: str | None
    dclid: str | None

    @property
    def session_key(self) -> str | None:
        return session_key(self.user_pseudo_id, self.ga_session_id)

    @property
    def user_key(self) -> str | None:
        return self.user_id if self.user_id is not None else self.user_pseudo_id


@dataclass(frozen=True)
class PurchaseSessionRecord:
    """A purchase with the attributes of the session it happened in.

    Every ``session_*`` field is ``None`` when the purchase could not be
    joined to a reconstructed session.  Timestamps are ISO-8601 strings with
    microsecond precision and an explicit offset.
    """

    transaction_id: str | None
    merchant_order_id: str | None
    payment_type: str | None
    currency: str | None
    gross_revenue: float | None
    tax_amount: float | None
    shipping_amount: float | None
    discount_amount: float | None
    coupon_code: str | None
    affiliation: str | None
    user_pseudo_id: str | None
    user_id: str | None
    ga_session_id: int | None
    purchase_timestamp: str | None
    event_date: str | None
    items_line_count: int | None
    items_quantity: int | None
    purchase_gclid: str | None
    purchase_dclid: str | None
    session_key: str | None
    session_start_time: str | None = None
    session_end_time: str | None = None
    session_duration_sec: float | None = None
    session_event_date: str | None = None
    session_event_hour: int | None = None
    session_pageviews_count: int | None = None
    session_events_count: int | None = None
    session_engagement_time_msec: int | None = None
    session_is_engaged: bool | None = None
    session_bounce_like: bool | None = None
    session_landing_url: str | None = None
    session_landing_title: str | None = None
    session_exit_url: str | None = None
    session_landing_path: str | None = None
    session_utm_source_start: str | None = None
    session_utm_medium_start: str | None = None
    session_utm_campaign_start: str | None = None
    session_utm_source_landing: str | None = None
    session_utm_medium_landing: str | None = None
    session_utm_campaign_landing: str | None = None
    session_utm_term_landing: str | None = None
    session_utm_content_landing: str | None = None
    session_ref_source: str | None = None
    session_ref_medium: str | None = None
    session_gclid: str | None = None
    session_dclid: str | None = None
    session_traffic_source_type: str | None = None
    session_traffic_source: str | None = None
    session_traffic_medium: str | None = None
    session_traffic_campaign: str | None = None
    session_device_category: str | None = None
    session_operating_system: str | None = None
    session_browser: str | None = None
    session_geo_country: str | None = None
    session_geo_region: str | None = None
    session_geo_city: str | None = None
    session_transactions_count: int | None = None
    session_conversion_flag: bool | None = None
    session_has_session_start: bool | None = None
    session_updated_at: str | None = None
    is_refund: bool | None = False
    refund_amount: float | None = None
    parent_transaction_id: str | None = None
    ingested_at: str | None = None
