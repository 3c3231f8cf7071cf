# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
destkit public contracts.

Re-exports the error taxonomy, the resource models of the table/job API and
the client protocols the engine is written against.
"""

# Client contracts
from .clients import IngestionClient, OAuthClient, TableApi

# Errors
from .errors import (
    AuthenticationError,
    ConfigurationError,
    DeletionJobFailedError,
    DeliveryError,
    DestinationError,
    MalformedMessageError,
    PollTimeoutError,
    SyncModeMismatchError,
    UnexpectedStateError,
    UnsupportedTypeError,
    UpstreamError,
)

# Models
from .models import (
    BasicAuth,
    ColumnInput,
    ColumnType,
    CreateTableInput,
    DeletionJob,
    FilterInput,
    OAuthToken,
    RecordRejection,
    StorageResource,
    Table,
    TableSettings,
)

__all__ = [
    # clients
    "IngestionClient",
    "OAuthClient",
    "TableApi",
    # errors
    "AuthenticationError",
    "ConfigurationError",
    "DeletionJobFailedError",
    "DeliveryError",
    "DestinationError",
    "MalformedMessageError",
    "PollTimeoutError",
    "SyncModeMismatchError",
    "UnexpectedStateError",
    "UnsupportedTypeError",
    "UpstreamError",
    # models
    "BasicAuth",
    "ColumnInput",
    "ColumnType",
    "CreateTableInput",
    "DeletionJob",
    "FilterInput",
    "OAuthToken",
    "RecordRejection",
    "StorageResource",
    "Table",
    "TableSettings",
]
