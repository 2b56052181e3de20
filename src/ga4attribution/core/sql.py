"""Helper utilities for constructing parameterized BigQuery statements.

Query text never contains caller-supplied values.  Everything that varies per
request (event names, dates, limits, visitor ids) travels as a named, typed
query parameter; the only interpolated piece is the table reference, which is
validated before it is quoted.  Keeping the statement text independent of the
values also keeps the generated SQL deterministic for the snapshot tests.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from google.cloud import bigquery

__all__ = [
    "BoundQuery",
    "QueryParam",
    "param_exists_condition",
    "quote_table",
]

_TABLE_ID_PATTERN = re.compile(r"[A-Za-z0-9_\-]+(\.[A-Za-z0-9_\-]+){1,2}\*?")


def quote_table(table_id: str) -> str:
    """Return ``table_id`` wrapped in backticks after validating its shape."""

    if _TABLE_ID_PATTERN.fullmatch(table_id) is None:
        raise ValueError(
            "table_id must look like 'project.dataset.table' (optionally ending in '*'), "
            f"received: {table_id!r}"
        )
    return f"`{table_id}`"


def param_exists_condition(key: str, column: str = "string_value", alias: str = "e") -> str:
    """Return an ``EXISTS`` clause requiring a present ``event_params`` value.

    For ``string_value`` an empty string counts as absent, matching
    :meth:`ParamValue.from_record`.

    ``key`` is a fixed schema key chosen by this package, never user input.
    """

    if not re.fullmatch(r"[a-z_]+", key):
        raise ValueError(f"Unsupported parameter key: {key!r}")
    present = f"ep.value.{column} IS NOT NULL"
    if column == "string_value":
        present += " AND ep.value.string_value != ''"
    return (
        f"EXISTS (SELECT 1 FROM UNNEST({alias}.event_params) ep "
        f"WHERE ep.key = '{key}' AND {present})"
    )


@dataclass(frozen=True)
class QueryParam:
    """A named query parameter bound at execution time."""

    name: str
    type_: str
    value: Any
    array: bool = False

    def to_bigquery(self) -> bigquery.ScalarQueryParameter | bigquery.ArrayQueryParameter:
        if self.array:
            return bigquery.ArrayQueryParameter(self.name, self.type_, list(self.value))
        return bigquery.ScalarQueryParameter(self.name, self.type_, self.value)


@dataclass(frozen=True)
class BoundQuery:
    """A statement template, its table reference and its bound parameters.

    ``template`` uses ``{table}`` as the only placeholder.  ``limit`` and
    ``offset`` are appended as bound ``LIMIT @limit`` / ``OFFSET @offset``
    clauses; an offset of zero is omitted.
    """

    template: str
    table_id: str
    params: Sequence[QueryParam] = field(default_factory=tuple)
    limit: int | None = None
    offset: int | None = None

    def render(self) -> str:
        sql = self.template.format(table=quote_table(self.table_id)).rstrip()
        clauses = []
        if self.limit is not None:
            clauses.append("LIMIT @limit")
        if self.offset:
            clauses.append("OFFSET @offset")
        if clauses:
            sql = f"{sql}\n{' '.join(clauses)}"
        return sql + "\n"

    def query_parameters(self) -> list[QueryParam]:
        params = list(self.params)
        if self.limit is not None:
            params.append(QueryParam("limit", "INT64", int(self.limit)))
        if self.offset:
            params.append(QueryParam("offset", "INT64", int(self.offset)))
        return params

    def job_config(self) -> bigquery.QueryJobConfig:
        return bigquery.QueryJobConfig(
            query_parameters=[param.to_bigquery() for param in self.query_parameters()]
        )
