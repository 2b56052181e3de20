from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from ga4attribution.core.attribution import AttributionResolver
from ga4attribution.core.params import ParamValue
from ga4attribution.core.sessions import SessionReconstructor, group_events, landing_path
from ga4attribution.core.types import DeviceInfo, Event, GeoInfo

T0 = datetime(2024, 6, 5, 20, 0, tzinfo=timezone.utc)


def _event(
    name: str,
    offset: int = 0,
    *,
    visitor: str | None = "v1",
    session: int | None = 1,
    user_id: str | None = None,
    device: DeviceInfo | None = None,
    **params: object,
) -> Event:
    return Event(
        visitor_id=visitor,
        session_id=session,
        timestamp=T0 + timedelta(seconds=offset),
        name=name,
        params={key: ParamValue.of(value) for key, value in params.items()},
        device=device or DeviceInfo(),
        geo=GeoInfo(country="Indonesia"),
        user_id=user_id,
    )


def test_group_events_is_stable_for_equal_timestamps() -> None:
    first = _event("page_view", 5, page_location="https://a.example/1")
    second = _event("page_view", 5, page_location="https://a.example/2")
    earlier = _event("session_start", 0)

    groups = group_events([first, second, earlier])

    assert groups[("v1", 1)] == [earlier, first, second]


def test_session_bounds_counts_and_engagement() -> None:
    events = [
        _event("session_start", 0, source="google", medium="cpc", device=DeviceInfo(category="mobile")),
        _event(
            "page_view",
            2,
            page_location="https://shop.example.com/landing?utm_source=news",
            page_title="Landing",
            engagement_time_msec=4000,
            device=DeviceInfo(category="desktop"),
        ),
        _event("page_view", 30, page_location="https://shop.example.com/checkout", engagement_time_msec=7000),
        _event("purchase", 45, user_id="u-9", transaction_id="T1"),
    ]

    session = SessionReconstructor().build_session(events)

    assert session.start == T0
    assert session.end == T0 + timedelta(seconds=45)
    assert session.start <= session.end
    assert session.duration_sec == 45.0
    assert session.event_count == 4
    assert session.pageview_count == 2
    assert session.engagement_time_msec == 11000
    assert session.is_engaged and not session.bounce_like
    assert session.landing_url == "https://shop.example.com/landing?utm_source=news"
    assert session.landing_title == "Landing"
    assert session.landing_path == "/landing?utm_source=news"
    assert session.exit_url == "https://shop.example.com/checkout"
    assert session.device == DeviceInfo(category="mobile")
    assert session.user_key == "u-9"
    assert session.transactions_count == 1
    assert session.conversion_flag
    assert session.has_session_start
    assert session.attribution.source_type == "session_start"
    assert session.key == "v1.1"


def test_single_short_pageview_is_bounce_like() -> None:
    session = SessionReconstructor().build_session(
        [_event("page_view", 0, page_location="https://shop.example.com/", engagement_time_msec=1200)]
    )

    assert session.bounce_like
    assert not session.is_engaged
    assert session.user_key == "v1"
    assert not session.has_session_start
    assert session.attribution.source_type == "direct"


@pytest.mark.parametrize(
    ("pageviews", "engagement", "engaged"),
    [(0, 0, False), (1, 9999, False), (1, 10000, True), (2, 0, True)],
)
def test_engaged_and_bounce_like_are_exclusive(pageviews: int, engagement: int, engaged: bool) -> None:
    events = [_event("user_engagement", 0, engagement_time_msec=engagement)]
    events += [_event("page_view", i + 1) for i in range(pageviews)]

    session = SessionReconstructor().build_session(events)

    assert session.is_engaged is engaged
    assert not (session.is_engaged and session.bounce_like)


def test_landing_and_exit_ignore_pageviews_without_location() -> None:
    session = SessionReconstructor().build_session(
        [
            _event("page_view", 0),
            _event("page_view", 1, page_location="https://shop.example.com/a"),
            _event("page_view", 2, page_location="https://shop.example.com/b"),
            _event("page_view", 3),
        ]
    )

    assert session.landing_url == "https://shop.example.com/a"
    assert session.exit_url == "https://shop.example.com/b"


def test_event_date_and_hour_follow_reporting_timezone() -> None:
    session = SessionReconstructor(tz="Asia/Makassar").build_session([_event("page_view", 0)])

    assert session.event_date == date(2024, 6, 6)
    assert session.event_hour == 4


def test_referrer_tier_uses_owned_domains() -> None:
    reconstructor = SessionReconstructor(AttributionResolver(["example.com"]))
    session = reconstructor.build_session(
        [
            _event("page_view", 0, page_location="https://shop.example.com/", page_referrer="https://example.com/"),
            _event("page_view", 1, page_location="https://shop.example.com/x", page_referrer="https://partner.io/p"),
        ]
    )

    assert session.referrer is not None
    assert (session.attribution.source_type, session.attribution.source) == ("referrer", "partner.io")


def test_reconstruct_orders_by_start_and_index_skips_keyless_sessions() -> None:
    events = [
        _event("page_view", 60, visitor="v2", session=7),
        _event("page_view", 0, visitor="v1", session=1),
        _event("page_view", 30, visitor="v3", session=None),
    ]
    reconstructor = SessionReconstructor()

    sessions = reconstructor.reconstruct(events)
    index = reconstructor.index(events)

    assert [session.visitor_id for session in sessions] == ["v1", "v3", "v2"]
    assert set(index) == {"v1.1", "v2.7"}


def test_build_session_requires_events() -> None:
    with pytest.raises(ValueError):
        SessionReconstructor().build_session([])


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://shop.example.com/p/1?x=1", "/p/1?x=1"),
        ("https://shop.example.com/", "/"),
        ("/relative", None),
        (None, None),
    ],
)
def test_landing_path(url: str | None, expected: str | None) -> None:
    assert landing_path(url) == expected
