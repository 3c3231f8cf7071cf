# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""Map a declared JSON-schema column type to a destination column type."""

from ..api.errors import UnsupportedTypeError
from ..api.models import ColumnType
from ..protocol.messages import PropertySpec

TIMESTAMP_WITHOUT_TIMEZONE = "timestamp_without_timezone"

_SIMPLE: dict[str, ColumnType] = {
    "boolean": ColumnType.BOOLEAN,
    "number": ColumnType.DOUBLE,
    "integer": ColumnType.INT64,
    "object": ColumnType.JSON,
    "array": ColumnType.JSON,
}


def _string_type(fmt: str | None, airbyte_type: str | None) -> ColumnType:
    if fmt == "date":
        return ColumnType.DATE
    if fmt == "date-time":
        if airbyte_type == TIMESTAMP_WITHOUT_TIMEZONE:
            return ColumnType.STRING
        return ColumnType.TIMESTAMP
    return ColumnType.STRING


def to_column_type(prop: PropertySpec) -> ColumnType:
    """
    Resolve the column type of one schema property.

    "null" is ignored; an empty or ambiguous (multi-type) declaration falls
    back to STRING. Unknown single types raise UnsupportedTypeError.
    """
    types = [t for t in prop.types if t != "null"]
    if len(types) != 1:
        return ColumnType.STRING

    (type_,) = types
    if type_ == "string":
        return _string_type(prop.format, prop.airbyte_type)
    try:
        return _SIMPLE[type_]
    except KeyError:
        raise UnsupportedTypeError(type_, prop.format, prop.airbyte_type) from None


__all__ = ["to_column_type"]
