"""Typed access to GA4 ``event_params`` values.

The export schema stores each parameter as a record carrying one of
``string_value``, ``int_value``, ``float_value`` or ``double_value``.  Rather
than passing those records around as untyped dictionaries, every value is
normalized into a :class:`ParamValue` that remembers which representation it
came from.  The ``as_*`` helpers mirror the column-specific extraction the
warehouse would otherwise do (``ep.value.string_value`` and friends).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Literal

__all__ = [
    "NULL",
    "ParamKind",
    "ParamValue",
    "coalesce",
    "parse_event_params",
    "param_float",
    "param_int",
    "param_str",
]

ParamKind = Literal["string", "int", "float", "null"]


@dataclass(frozen=True)
class ParamValue:
    """A single event parameter value tagged with its representation."""

    kind: ParamKind
    value: str | int | float | None = None

    @classmethod
    def of(cls, value: object) -> "ParamValue":
        """Wrap a plain Python scalar."""

        if value is None:
            return NULL
        if isinstance(value, bool):
            return cls("int", int(value))
        if isinstance(value, int):
            return cls("int", value)
        if isinstance(value, float):
            return cls("float", value)
        return cls("string", str(value))

    @classmethod
    def from_record(cls, record: Mapping[str, Any] | None) -> "ParamValue":
        """Build a value from a BigQuery ``event_params.value`` record.

        A non-empty string wins, then the integer, then float, then double
        representation.
        """

        if not record:
            return NULL
        string_value = record.get("string_value")
        if isinstance(string_value, str) and string_value:
            return cls("string", string_value)
        int_value = record.get("int_value")
        if int_value is not None:
            return cls("int", int(int_value))
        for key in ("float_value", "double_value"):
            numeric = record.get(key)
            if numeric is not None:
                return cls("float", float(numeric))
        return NULL

    @property
    def is_null(self) -> bool:
        return self.kind == "null"

    def as_str(self) -> str | None:
        return self.value if self.kind == "string" else None  # type: ignore[return-value]

    def as_int(self) -> int | None:
        return self.value if self.kind == "int" else None  # type: ignore[return-value]

    def as_float(self) -> float | None:
        """Return the float representation, falling back to the integer one."""

        if self.kind == "float":
            return self.value  # type: ignore[return-value]
        if self.kind == "int":
            return float(self.value)  # type: ignore[arg-type]
        return None

    def as_python(self) -> str | int | float | None:
        return self.value


NULL = ParamValue("null")


def parse_event_params(records: Iterable[Mapping[str, Any]] | None) -> dict[str, ParamValue]:
    """Convert a repeated ``event_params`` column into a key/value mapping."""

    params: dict[str, ParamValue] = {}
    for record in records or ():
        key = record.get("key")
        if not key:
            continue
        params[key] = ParamValue.from_record(record.get("value"))
    return params


def coalesce(*values: object) -> Any:
    """Return the first argument that is not ``None``."""

    for value in values:
        if value is not None:
            return value
    return None


def param_str(params: Mapping[str, ParamValue], key: str) -> str | None:
    return params.get(key, NULL).as_str()


def param_int(params: Mapping[str, ParamValue], key: str) -> int | None:
    return params.get(key, NULL).as_int()


def param_float(params: Mapping[str, ParamValue], key: str) -> float | None:
    return params.get(key, NULL).as_float()
