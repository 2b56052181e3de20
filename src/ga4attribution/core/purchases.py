"""Extract purchases from events and join them to their sessions."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from zoneinfo import ZoneInfo

from .params import coalesce, param_float, param_str
from .types import Event, Purchase, PurchaseSessionRecord, Session

__all__ = ["extract_purchase", "extract_purchases", "format_timestamp", "join_sessions"]


def format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat(timespec="microseconds")


def extract_purchase(event: Event, *, tz: str = "UTC") -> Purchase | None:
    """Return the :class:`Purchase` carried by ``event``, if any.

    Non-purchase events and purchases without a ``transaction_id`` yield
    ``None``.
    """

    if event.name != "purchase":
        return None
    params = event.params
    transaction_id = param_str(params, "transaction_id")
    if transaction_id is None:
        return None

    quantities = [item.quantity if item.quantity is not None else 1 for item in event.items]
    return Purchase(
        transaction_id=transaction_id,
        merchant_order_id=coalesce(
            param_str(params, "merchant_order_id"), param_str(params, "unique_order_id")
        ),
        payment_type=param_str(params, "payment_type"),
        currency=param_str(params, "currency"),
        gross_revenue=param_float(params, "value"),
        tax_amount=param_float(params, "tax"),
        shipping_amount=param_float(params, "shipping"),
        discount_amount=param_float(params, "discount"),
        coupon_code=param_str(params, "coupon"),
        affiliation=param_str(params, "affiliation"),
        user_pseudo_id=event.visitor_id,
        user_id=event.user_id,
        ga_session_id=event.session_id,
        purchase_ts=event.timestamp,
        event_date=event.timestamp.astimezone(ZoneInfo(tz)).date(),
        items_line_count=len(event.items),
        items_quantity=sum(quantities) if quantities else None,
        gclid=param_str(params, "gclid"),
        dclid=param_str(params, "dclid"),
    )


def extract_purchases(events: Iterable[Event], *, tz: str = "UTC") -> list[Purchase]:
    """Return purchases in chronological order, dropping those without a transaction id."""

    purchases = [purchase for event in events if (purchase := extract_purchase(event, tz=tz))]
    purchases.sort(key=lambda purchase: purchase.purchase_ts)
    return purchases


def _session_fields(session: Session, updated_at: str) -> dict[str, object]:
    attribution = session.attribution
    return {
        "session_start_time": format_timestamp(session.start),
        "session_end_time": format_timestamp(session.end),
        "session_duration_sec": session.duration_sec,
        "session_event_date": session.event_date.isoformat(),
        "session_event_hour": session.event_hour,
        "session_pageviews_count": session.pageview_count,
        "session_events_count": session.event_count,
        "session_engagement_time_msec": session.engagement_time_msec,
        "session_is_engaged": session.is_engaged,
        "session_bounce_like": session.bounce_like,
        "session_landing_url": session.landing_url,
        "session_landing_title": session.landing_title,
        "session_exit_url": session.exit_url,
        "session_landing_path": session.landing_path,
        "session_utm_source_start": session.start_params.source,
        "session_utm_medium_start": session.start_params.medium,
        "session_utm_campaign_start": session.start_params.campaign,
        "session_utm_source_landing": session.landing_utm.source,
        "session_utm_medium_landing": session.landing_utm.medium,
        "session_utm_campaign_landing": session.landing_utm.campaign,
        "session_utm_term_landing": session.landing_utm.term,
        "session_utm_content_landing": session.landing_utm.content,
        "session_ref_source": session.referrer.source if session.referrer else None,
        "session_ref_medium": session.referrer.medium if session.referrer else None,
        "session_gclid": attribution.gclid,
        "session_dclid": attribution.dclid,
        "session_traffic_source_type": attribution.source_type,
        "session_traffic_source": attribution.source,
        "session_traffic_medium": attribution.medium,
        "session_traffic_campaign": attribution.campaign,
        "session_device_category": session.device.category,
        "session_operating_system": session.device.operating_system,
        "session_browser": session.device.browser,
        "session_geo_country": session.geo.country,
        "session_geo_region": session.geo.region,
        "session_geo_city": session.geo.city,
        "session_transactions_count": session.transactions_count,
        "session_conversion_flag": session.conversion_flag,
        "session_has_session_start": session.has_session_start,
        "session_updated_at": updated_at,
    }


def join_sessions(
    purchases: Iterable[Purchase],
    sessions: Mapping[str, Session],
    *,
    ingested_at: datetime,
) -> list[PurchaseSessionRecord]:
    """Left join purchases to sessions on the ``visitor.session`` key.

    Every purchase is kept.  Refund linkage is not available from the event
    stream, so ``is_refund`` is always ``False`` and the refund fields are
    ``None``.
    """

    stamp = format_timestamp(ingested_at)
    records = []
    for purchase in purchases:
        key = purchase.session_key
        session = sessions.get(key) if key is not None else None
        session_fields = _session_fields(session, stamp) if session is not None else {}
        records.append(
            PurchaseSessionRecord(
                transaction_id=purchase.transaction_id,
                merchant_order_id=purchase.merchant_order_id,
                payment_type=purchase.payment_type,
                currency=purchase.currency,
                gross_revenue=purchase.gross_revenue,
                tax_amount=purchase.tax_amount,
                shipping_amount=purchase.shipping_amount,
                discount_amount=purchase.discount_amount,
                coupon_code=purchase.coupon_code,
                affiliation=purchase.affiliation,
                user_pseudo_id=purchase.user_pseudo_id,
                user_id=purchase.user_id,
                ga_session_id=purchase.ga_session_id,
                purchase_timestamp=format_timestamp(purchase.purchase_ts),
                event_date=purchase.event_date.isoformat(),
                items_line_count=purchase.items_line_count,
                items_quantity=purchase.items_quantity,
                purchase_gclid=purchase.gclid,
                purchase_dclid=purchase.dclid,
                session_key=key,
                is_refund=False,
                refund_amount=None,
                parent_transaction_id=None,
                ingested_at=stamp,
                **session_fields,
            )
        )
    return records
