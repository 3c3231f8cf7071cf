# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Resource models of the table/job API
====================================

Plain pydantic v2 models mirroring what the remote API accepts and returns:

- Table: webhook-backed data source (one per stream); its `unique_id` column
  decides the table shape (raw-id = append-only, anything else = dedup).
- StorageResource: the backing data store that deletion jobs target.
- DeletionJob: async deletion with status CREATED -> IN_PROGRESS -> SUCCEEDED|FAILED.

Status fields are kept as strings: they are polled, compared against
pending/target label sets, and never interpreted otherwise.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# --------------------------------------------------------------------------- #
# Column types / table definition
# --------------------------------------------------------------------------- #


class ColumnType(str, Enum):
    """Destination column types."""

    STRING = "STRING"
    BOOLEAN = "BOOLEAN"
    DOUBLE = "DOUBLE"
    INT64 = "INT64"
    DATE = "DATE"
    TIMESTAMP = "TIMESTAMP"
    JSON = "JSON"


class ColumnInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    type: ColumnType
    nullable: bool = True
    json_property: str

    @classmethod
    def of(cls, name: str, type_: ColumnType, *, nullable: bool = True) -> ColumnInput:
        """Column fed from the JSON property of the same name."""
        return cls(name=name, type=type_, nullable=nullable, json_property=name)


class TableSettings(BaseModel):
    """
    Storage-engine settings of a de-duplicating table.

    Rows sharing the `order_by` key collapse to the one with the highest `ver`.
    `primary_key` and `partition_by` are sent explicitly empty.
    """

    model_config = ConfigDict(extra="forbid")

    primary_key: list[str] = Field(default_factory=list)
    partition_by: list[str] = Field(default_factory=list)
    order_by: list[str] = Field(default_factory=list)
    engine: str = "REPLACING_MERGE_TREE"
    ver: str | None = None


class BasicAuth(BaseModel):
    model_config = ConfigDict(extra="forbid")

    username: str
    password: str


class CreateTableInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    unique_name: str
    columns: list[ColumnInput]
    basic_auth: BasicAuth
    unique_id: str
    timestamp: str | None = None
    table_settings: TableSettings | None = None


# --------------------------------------------------------------------------- #
# Resources
# --------------------------------------------------------------------------- #


class Table(BaseModel):
    """A webhook-backed destination table as reported by the API."""

    model_config = ConfigDict(extra="ignore")

    id: str
    unique_name: str
    status: str
    webhook_url: str = ""
    basic_auth: BasicAuth | None = None
    unique_id: str | None = None
    timestamp: str | None = None
    table_settings: TableSettings | None = None


class StorageResource(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    unique_name: str
    status: str


class FilterInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    column: str
    operator: str
    value: str


class DeletionJob(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    status: str
    storage_id: str | None = None


# --------------------------------------------------------------------------- #
# Delivery / auth
# --------------------------------------------------------------------------- #


class RecordRejection(BaseModel):
    """One event of a posted batch that the endpoint refused to store."""

    model_config = ConfigDict(extra="ignore")

    index: int | None = None
    message: str


class OAuthToken(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None


__all__ = [
    "ColumnType",
    "ColumnInput",
    "TableSettings",
    "BasicAuth",
    "CreateTableInput",
    "Table",
    "StorageResource",
    "FilterInput",
    "DeletionJob",
    "RecordRejection",
    "OAuthToken",
]
