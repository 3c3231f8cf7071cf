# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Airbyte protocol messages (subset)
==================================

Wire-level envelopes exchanged with the platform over stdin/stdout, one JSON
object per line. Only the parts a destination reads or writes are modelled:

- RECORD / STATE on input (everything else is tolerated and ignored);
- SPEC / CONNECTION_STATUS / STATE / LOG on output;
- the configured catalog handed over as a file.

Unlike internal models, inbound messages use `extra="ignore"`: the platform
adds fields between protocol versions and a destination must not choke on
them. STATE payloads are kept as raw dicts so they can be forwarded verbatim.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..api.errors import ConfigurationError, MalformedMessageError
from ..core.utils import table_unique_name

# --------------------------------------------------------------------------- #
# Enums
# --------------------------------------------------------------------------- #


class MessageType(str, Enum):
    """Top-level message kind on the wire."""

    RECORD = "RECORD"
    STATE = "STATE"
    LOG = "LOG"
    SPEC = "SPEC"
    CONNECTION_STATUS = "CONNECTION_STATUS"
    CATALOG = "CATALOG"
    TRACE = "TRACE"
    CONTROL = "CONTROL"


class SyncMode(str, Enum):
    """How the source reads a stream."""

    full_refresh = "full_refresh"
    incremental = "incremental"


class DestinationSyncMode(str, Enum):
    """How the destination must treat the data of a stream."""

    append = "append"
    overwrite = "overwrite"
    append_dedup = "append_dedup"


class CheckStatus(str, Enum):
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


# --------------------------------------------------------------------------- #
# Catalog
# --------------------------------------------------------------------------- #


class PropertySpec(BaseModel):
    """
    JSON-schema description of one stream column.

    `type` may be a single name or a list (e.g. ``["null", "string"]``);
    `types` always returns the list form.
    """

    model_config = ConfigDict(extra="allow")

    type: str | list[str] | None = None
    format: str | None = None
    airbyte_type: str | None = None

    @property
    def types(self) -> list[str]:
        if self.type is None:
            return []
        if isinstance(self.type, str):
            return [self.type]
        return list(self.type)


class JsonSchema(BaseModel):
    model_config = ConfigDict(extra="allow")

    properties: dict[str, PropertySpec] = Field(default_factory=dict)


class Stream(BaseModel):
    """A source stream: think table, collection or topic."""

    model_config = ConfigDict(extra="ignore")

    name: str
    json_schema: JsonSchema = Field(default_factory=JsonSchema)
    namespace: str | None = None
    supported_sync_modes: list[SyncMode] = Field(default_factory=list)
    source_defined_cursor: bool | None = None
    default_cursor_field: list[str] = Field(default_factory=list)
    source_defined_primary_key: list[list[str]] = Field(default_factory=list)


class ConfiguredStream(BaseModel):
    """A stream selected for sync, with the policy the destination must apply."""

    model_config = ConfigDict(extra="ignore")

    stream: Stream
    destination_sync_mode: DestinationSyncMode
    sync_mode: SyncMode = SyncMode.full_refresh
    cursor_field: list[str] = Field(default_factory=list)
    primary_key: list[list[str]] = Field(default_factory=list)

    @property
    def table_name(self) -> str:
        return table_unique_name(self.stream.namespace, self.stream.name)

    @property
    def cursor(self) -> str | None:
        return self.cursor_field[0] if self.cursor_field else None


class ConfiguredCatalog(BaseModel):
    model_config = ConfigDict(extra="ignore")

    streams: list[ConfiguredStream] = Field(default_factory=list)


# --------------------------------------------------------------------------- #
# Payloads
# --------------------------------------------------------------------------- #


class RecordMessage(BaseModel):
    """One data point of a stream. `emitted_at` is epoch milliseconds."""

    model_config = ConfigDict(extra="ignore")

    stream: str
    data: dict[str, Any]
    emitted_at: int
    namespace: str | None = None

    @property
    def table_name(self) -> str:
        return table_unique_name(self.namespace, self.stream)


class ConnectionStatus(BaseModel):
    """Outcome of a `check` run."""

    model_config = ConfigDict(extra="forbid")

    status: CheckStatus
    message: str | None = None


class ConnectorSpecification(BaseModel):
    """What the connector supports and how it is configured."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    documentation_url: str | None = Field(default=None, alias="documentationUrl")
    changelog_url: str | None = Field(default=None, alias="changelogUrl")
    supports_incremental: bool = Field(default=False, alias="supportsIncremental")
    supports_normalization: bool = Field(default=False, alias="supportsNormalization")
    supports_dbt: bool = Field(default=False, alias="supportsDBT")
    supported_destination_sync_modes: list[DestinationSyncMode] = Field(default_factory=list)
    connection_specification: dict[str, Any] = Field(default_factory=dict, alias="connectionSpecification")


# --------------------------------------------------------------------------- #
# Envelope
# --------------------------------------------------------------------------- #


class Message(BaseModel):
    """
    Protocol envelope. `type` is kept as a plain string so that kinds newer
    than this module (or unknown to it) still parse and can be skipped.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: str
    record: RecordMessage | None = None
    state: dict[str, Any] | None = None
    spec: ConnectorSpecification | None = None
    connection_status: ConnectionStatus | None = Field(default=None, alias="connectionStatus")
    catalog: dict[str, Any] | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def parse_message(line: str | bytes) -> Message | None:
    """
    Decode one input line.

    Returns None for blank lines. Raises MalformedMessageError when the line is
    not UTF-8 JSON, or when a RECORD/STATE envelope lacks its payload.
    """
    try:
        if isinstance(line, bytes):
            line = line.decode("utf-8")
        if not line.strip():
            return None
        raw = json.loads(line)
        msg = Message.model_validate(raw)
    except (ValueError, ValidationError) as e:
        raise MalformedMessageError(f"failed to parse message: {e}") from e
    if msg.type == MessageType.RECORD and msg.record is None:
        raise MalformedMessageError("RECORD message without a record payload")
    if msg.type == MessageType.STATE and msg.state is None:
        raise MalformedMessageError("STATE message without a state payload")
    return msg


def load_catalog(path: Path | str) -> ConfiguredCatalog:
    """Read and validate a configured catalog file. Any failure is a ConfigurationError."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        return ConfiguredCatalog.model_validate(raw)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"configured catalog is invalid: {e}") from e


__all__ = [
    "MessageType",
    "SyncMode",
    "DestinationSyncMode",
    "CheckStatus",
    "PropertySpec",
    "JsonSchema",
    "Stream",
    "ConfiguredStream",
    "ConfiguredCatalog",
    "RecordMessage",
    "ConnectionStatus",
    "ConnectorSpecification",
    "Message",
    "parse_message",
    "load_catalog",
]
