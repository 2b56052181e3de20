"""Rebuild sessions from a flat stream of events."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from urllib.parse import urlsplit
from zoneinfo import ZoneInfo

from .attribution import AttributionResolver, campaign_params, landing_utm
from .params import param_int, param_str
from .types import Event, Session

__all__ = [
    "ENGAGED_MSEC_THRESHOLD",
    "ENGAGED_PAGEVIEW_THRESHOLD",
    "SessionReconstructor",
    "group_events",
    "landing_path",
]

ENGAGED_MSEC_THRESHOLD = 10_000
ENGAGED_PAGEVIEW_THRESHOLD = 2

SessionId = tuple[str | None, int | None]


def group_events(events: Iterable[Event]) -> dict[SessionId, list[Event]]:
    """Group events by ``(visitor_id, session_id)`` in chronological order.

    Sorting is stable, so events sharing a timestamp keep their input order.
    """

    groups: dict[SessionId, list[Event]] = {}
    for event in events:
        groups.setdefault((event.visitor_id, event.session_id), []).append(event)
    for group in groups.values():
        group.sort(key=lambda event: event.timestamp)
    return groups


def landing_path(url: str | None) -> str | None:
    """Return the path and query of an absolute http(s) URL."""

    if not url:
        return None
    parts = urlsplit(url)
    if parts.scheme not in {"http", "https"} or not parts.netloc or not parts.path:
        return None
    path = parts.path
    if parts.query:
        path = f"{path}?{parts.query}"
    if parts.fragment:
        path = f"{path}#{parts.fragment}"
    return path


def _first_param(events: Sequence[Event], key: str) -> str | None:
    for event in events:
        value = param_str(event.params, key)
        if value is not None:
            return value
    return None


class SessionReconstructor:
    """Turn events into one :class:`Session` per ``(visitor_id, session_id)``.

    ``tz`` is the reporting timezone used for each session's event date and
    hour.
    """

    def __init__(self, resolver: AttributionResolver | None = None, *, tz: str = "UTC") -> None:
        self.resolver = resolver or AttributionResolver()
        self.tz = tz
        self._zone = ZoneInfo(tz)

    def reconstruct(self, events: Iterable[Event]) -> list[Session]:
        """Return sessions ordered by start time."""

        sessions = [self.build_session(group) for group in group_events(events).values()]
        sessions.sort(key=lambda session: session.start)
        return sessions

    def index(self, events: Iterable[Event]) -> dict[str, Session]:
        """Return sessions keyed by their ``visitor.session`` join key."""

        return {
            session.key: session
            for session in self.reconstruct(events)
            if session.key is not None
        }

    def build_session(self, group: Sequence[Event]) -> Session:
        """Summarize one chronologically ordered, non-empty event group."""

        if not group:
            raise ValueError("a session needs at least one event")

        first = group[0]
        start = first.timestamp
        end = group[-1].timestamp
        page_views = [event for event in group if event.name == "page_view"]
        session_starts = [event for event in group if event.name == "session_start"]

        pageview_count = len(page_views)
        engagement = sum(param_int(event.params, "engagement_time_msec") or 0 for event in group)
        is_engaged = engagement >= ENGAGED_MSEC_THRESHOLD or pageview_count >= ENGAGED_PAGEVIEW_THRESHOLD

        landing_url = _first_param(page_views, "page_location")
        exit_url = _first_param(page_views[::-1], "page_location")

        start_params = campaign_params(session_starts)
        utm = landing_utm(landing_url)
        referrer = self.resolver.first_external_referrer(page_views)
        local_start = self._local(start)

        return Session(
            visitor_id=first.visitor_id,
            session_id=first.session_id,
            user_key=next((event.user_id for event in group if event.user_id), first.visitor_id),
            start=start,
            end=end,
            event_date=local_start.date(),
            event_hour=local_start.hour,
            event_count=len(group),
            pageview_count=pageview_count,
            engagement_time_msec=engagement,
            is_engaged=is_engaged,
            bounce_like=pageview_count == 1 and not is_engaged,
            landing_url=landing_url,
            landing_title=_first_param(page_views, "page_title"),
            landing_path=landing_path(landing_url),
            exit_url=exit_url,
            start_params=start_params,
            landing_utm=utm,
            referrer=referrer,
            attribution=self.resolver.resolve(start_params, utm, referrer),
            device=first.device,
            geo=first.geo,
            transactions_count=sum(1 for event in group if event.name == "purchase"),
            has_session_start=bool(session_starts),
        )

    def _local(self, value: datetime) -> datetime:
        return value.astimezone(self._zone)
