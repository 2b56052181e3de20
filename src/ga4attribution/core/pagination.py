"""Row limits, page stitching and string clipping for result sets."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, fields, replace
from typing import List, TypeVar

import structlog

__all__ = [
    "DEFAULT_LIMIT",
    "DEFAULT_PAGE",
    "DEFAULT_PAGE_SIZE",
    "MAX_ROWS",
    "MAX_STRING_LENGTH",
    "PageRequest",
    "accumulate_pages",
    "truncate_record",
    "truncate_string",
]

logger = structlog.get_logger(__name__)

T = TypeVar("T")

MAX_ROWS = 5000
DEFAULT_LIMIT = 500
DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 500
MAX_STRING_LENGTH = 200
_ELLIPSIS = "..."


def _positive(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{name} must be a positive integer, received: {value!r}")
    return value


@dataclass(frozen=True)
class PageRequest:
    """Validated pagination arguments with their ceilings applied."""

    limit: int = DEFAULT_LIMIT
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        object.__setattr__(self, "limit", min(_positive("limit", self.limit), MAX_ROWS))
        object.__setattr__(self, "page", _positive("page", self.page))
        object.__setattr__(self, "page_size", min(_positive("page_size", self.page_size), MAX_ROWS))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def accumulate_pages(
    fetch_page: Callable[[int, int], List[T]],
    request: PageRequest,
) -> List[T]:
    """Fetch consecutive pages until ``request.limit`` rows are collected.

    ``fetch_page(limit, offset)`` is called sequentially starting at
    ``request.page``.  The loop stops once enough rows are collected, when a
    page comes back shorter than ``page_size``, or when a page is empty.
    """

    rows: List[T] = []
    page = request.page
    per_page = request.page_size

    while len(rows) < request.limit:
        batch = fetch_page(per_page, (page - 1) * per_page)
        logger.debug("page_fetched", page=page, rows=len(batch))
        if not batch:
            break
        rows.extend(batch)
        if len(batch) < per_page:
            break
        page += 1

    return rows[: request.limit]


def truncate_string(value: str, max_length: int = MAX_STRING_LENGTH) -> str:
    if len(value) <= max_length:
        return value
    return value[: max_length - len(_ELLIPSIS)] + _ELLIPSIS


def truncate_record(record: T) -> T:
    """Return a copy of dataclass ``record`` with long string fields clipped."""

    changes = {}
    for field_ in fields(record):  # type: ignore[arg-type]
        value = getattr(record, field_.name)
        if isinstance(value, str) and len(value) > MAX_STRING_LENGTH:
            changes[field_.name] = truncate_string(value)
    return replace(record, **changes) if changes else record  # type: ignore[type-var]
