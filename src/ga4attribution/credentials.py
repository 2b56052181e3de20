"""Service-account parsing and warehouse client construction."""

from __future__ import annotations

import json
from typing import Any

from google.cloud import bigquery
from google.oauth2 import service_account

from .config import Settings
from .errors import MalformedSourceCredential

__all__ = ["bigquery_client_from_settings", "parse_service_account"]


def _try_parse(candidate: str) -> dict[str, Any] | None:
    try:
        data = json.loads(candidate)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _strip_wrapping(value: str, quote: str) -> str:
    if len(value) >= 2 and value.startswith(quote) and value.endswith(quote):
        return value[1:-1]
    return value


def _normalize(raw: str) -> str:
    trimmed = raw.strip()
    if trimmed.startswith("{") and trimmed.endswith("}"):
        return trimmed
    candidate = _strip_wrapping(trimmed, '"')
    candidate = _strip_wrapping(candidate, "'")
    return candidate.strip()


def parse_service_account(raw: str) -> dict[str, Any]:
    """Parse service-account JSON as it tends to arrive through env files.

    Accepts plain JSON, JSON wrapped in quotes and JSON with escaped quotes.
    Escaped newlines in ``private_key`` are restored.
    """

    normalized = _normalize(raw)
    for candidate in (raw, normalized, normalized.replace('\\"', '"')):
        info = _try_parse(candidate)
        if info is not None:
            break
    else:
        raise MalformedSourceCredential(
            "GOOGLE_CLOUD_CREDENTIALS does not contain valid JSON credentials."
        )

    private_key = info.get("private_key")
    if isinstance(private_key, str) and "\\n" in private_key:
        info["private_key"] = private_key.replace("\\n", "\n")

    if not isinstance(info.get("client_email"), str) or not isinstance(info.get("private_key"), str):
        raise MalformedSourceCredential(
            "GOOGLE_CLOUD_CREDENTIALS must include client_email and private_key."
        )
    return info


def bigquery_client_from_settings(settings: Settings) -> bigquery.Client:
    """Build a BigQuery client, preferring explicit service-account JSON."""

    if not settings.google_cloud_credentials:
        return bigquery.Client(project=settings.google_cloud_project_id)

    info = parse_service_account(settings.google_cloud_credentials)
    try:
        credentials = service_account.Credentials.from_service_account_info(info)
    except ValueError as exc:
        raise MalformedSourceCredential(f"Invalid service account credentials: {exc}") from exc
    project = settings.google_cloud_project_id or info.get("project_id")
    return bigquery.Client(project=project, credentials=credentials)
