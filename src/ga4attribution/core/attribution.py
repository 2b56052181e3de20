"""First-touch traffic attribution for reconstructed sessions.

A session's source, medium and campaign come from exactly one of four tiers,
tried in order:

1. campaign parameters on the ``session_start`` event,
2. UTM parameters on the landing page URL,
3. the first external referrer of a ``page_view``,
4. the ``(direct)`` / ``(none)`` sentinels.

The first tier that produces a source or medium wins outright; later tiers
never fill gaps left by an earlier one.  Click identifiers are the exception:
``gclid`` and ``dclid`` take the first non-null value from tier 1, then tier 2.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from urllib.parse import parse_qs, urlsplit

from .params import coalesce, param_str
from .types import (
    CAMPAIGN_NOT_SET,
    DIRECT_SOURCE,
    NO_MEDIUM,
    AttributionVerdict,
    CampaignParams,
    Event,
    LandingUtm,
    ReferrerVerdict,
)

__all__ = [
    "AttributionResolver",
    "SEARCH_ENGINES",
    "campaign_params",
    "classify_referrer",
    "landing_utm",
    "referrer_host",
]

# Matched as substrings of the lower-cased referrer host.
SEARCH_ENGINES: tuple[tuple[str, str], ...] = (
    ("google.", "google"),
    ("bing.", "bing"),
    ("search.yahoo.", "yahoo"),
    ("duckduckgo.", "duckduckgo"),
    ("baidu.", "baidu"),
    ("yandex.", "yandex"),
)


def campaign_params(session_start_events: Iterable[Event]) -> CampaignParams:
    """Collect campaign parameters from a session's ``session_start`` events.

    Each field takes the first non-null value in the given (chronological)
    order.
    """

    values: dict[str, str | None] = dict.fromkeys(("source", "medium", "campaign", "gclid", "dclid"))
    for event in session_start_events:
        for key in values:
            if values[key] is None:
                values[key] = param_str(event.params, key)
    return CampaignParams(**values)


def landing_utm(url: str | None) -> LandingUtm:
    """Parse UTM and click identifiers from a landing page URL."""

    if not url:
        return LandingUtm()
    query = parse_qs(urlsplit(url).query)

    def first(key: str) -> str | None:
        values = query.get(key)
        return values[0] if values else None

    return LandingUtm(
        source=first("utm_source"),
        medium=first("utm_medium"),
        campaign=first("utm_campaign"),
        term=first("utm_term"),
        content=first("utm_content"),
        gclid=first("gclid"),
        dclid=first("dclid"),
    )


def referrer_host(url: str | None) -> str | None:
    """Return the lower-cased host of an http(s) referrer, if it has one."""

    if not url:
        return None
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return None
    if parts.scheme.lower() not in {"http", "https"}:
        return None
    return parts.hostname or None


def classify_referrer(url: str, host: str) -> ReferrerVerdict:
    for needle, engine in SEARCH_ENGINES:
        if needle in host:
            return ReferrerVerdict(url=url, host=host, source=engine, medium="organic")
    return ReferrerVerdict(url=url, host=host, source=host, medium="referral")


class AttributionResolver:
    """Resolve one :class:`AttributionVerdict` per session.

    ``owned_domains`` lists the site's own domains; a referrer whose host is
    one of them, or a subdomain of one, is ignored.
    """

    def __init__(self, owned_domains: Iterable[str] = ()) -> None:
        self.owned_domains = frozenset(
            domain.strip().lower().lstrip(".") for domain in owned_domains if domain.strip()
        )

    def is_owned(self, host: str) -> bool:
        return any(host == domain or host.endswith("." + domain) for domain in self.owned_domains)

    def first_external_referrer(self, page_views: Sequence[Event]) -> ReferrerVerdict | None:
        """Return the first classified referrer among chronologically ordered page views."""

        for event in page_views:
            url = param_str(event.params, "page_referrer")
            host = referrer_host(url)
            if host is None or self.is_owned(host):
                continue
            return classify_referrer(url, host)  # type: ignore[arg-type]
        return None

    def resolve(
        self,
        start_params: CampaignParams,
        utm: LandingUtm,
        referrer: ReferrerVerdict | None,
    ) -> AttributionVerdict:
        gclid = coalesce(start_params.gclid, utm.gclid)
        dclid = coalesce(start_params.dclid, utm.dclid)

        if start_params.source is not None or start_params.medium is not None:
            return AttributionVerdict(
                source_type="session_start",
                source=coalesce(start_params.source, DIRECT_SOURCE),
                medium=coalesce(start_params.medium, NO_MEDIUM),
                campaign=coalesce(start_params.campaign, CAMPAIGN_NOT_SET),
                gclid=gclid,
                dclid=dclid,
            )

        if utm.source is not None or utm.medium is not None:
            return AttributionVerdict(
                source_type="first_pageview_utm",
                source=coalesce(utm.source, DIRECT_SOURCE),
                medium=coalesce(utm.medium, NO_MEDIUM),
                campaign=coalesce(utm.campaign, CAMPAIGN_NOT_SET),
                term=utm.term,
                content=utm.content,
                gclid=gclid,
                dclid=dclid,
            )

        if referrer is not None:
            return AttributionVerdict(
                source_type="referrer",
                source=referrer.source,
                medium=referrer.medium,
                gclid=gclid,
                dclid=dclid,
            )

        return AttributionVerdict(source_type="direct", gclid=gclid, dclid=dclid)
