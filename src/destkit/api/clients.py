# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Client interfaces the engine depends on.

Implementations live in `destkit.clients` (httpx); tests use in-memory fakes.
Fetches return None when the resource does not exist; every other failure
raises an UpstreamError (or DeliveryError for the ingestion endpoint).
"""

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from .models import (
    BasicAuth,
    CreateTableInput,
    DeletionJob,
    FilterInput,
    OAuthToken,
    RecordRejection,
    StorageResource,
    Table,
)


@runtime_checkable
class TableApi(Protocol):
    """Table/job management API (authenticated with an access token)."""

    async def create_table(self, spec: CreateTableInput) -> Table: ...
    async def fetch_table(self, unique_name: str) -> Table | None: ...
    async def fetch_storage(self, unique_name: str) -> StorageResource | None: ...
    async def create_deletion_job(self, storage_id: str, filters: Sequence[FilterInput]) -> DeletionJob: ...
    async def fetch_deletion_job(self, job_id: str) -> DeletionJob | None: ...
    async def delete_storage(self, unique_name: str) -> str: ...
    async def delete_table(self, unique_name: str) -> str: ...


@runtime_checkable
class IngestionClient(Protocol):
    """Webhook ingestion endpoint."""

    async def post_events(
        self, url: str, auth: BasicAuth | None, events: Sequence[dict[str, Any]]
    ) -> list[RecordRejection]: ...


@runtime_checkable
class OAuthClient(Protocol):
    async def fetch_token(self, application_id: str, application_secret: str) -> OAuthToken: ...


__all__ = ["TableApi", "IngestionClient", "OAuthClient"]
