"""
In-memory doubles of the client protocols.

Behaviour (state scripts, failures) is configured through constructor
parameters only, so every test builds exactly the world it needs.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from destkit.api.errors import DeliveryError, UpstreamError
from destkit.api.models import (
    BasicAuth,
    CreateTableInput,
    DeletionJob,
    FilterInput,
    OAuthToken,
    RecordRejection,
    StorageResource,
    Table,
    TableSettings,
)
from destkit.core.types import EXTRACTED_AT_COLUMN, RAW_ID_COLUMN


def make_table(
    name: str,
    *,
    unique_id: str = RAW_ID_COLUMN,
    status: str = "CONNECTED",
    table_settings: TableSettings | None = None,
) -> Table:
    return Table(
        id=f"DSO-{name}",
        unique_name=name,
        status=status,
        webhook_url=f"https://webhooks.test/{name}",
        basic_auth=BasicAuth(username="public", password="pw"),
        unique_id=unique_id,
        timestamp=EXTRACTED_AT_COLUMN if unique_id == RAW_ID_COLUMN else None,
        table_settings=table_settings,
    )


class FakeTableApi:
    """
    Table/job API over dicts.

    Args:
        tables: tables that already exist (their storage exists too).
        connect_states: statuses a freshly created table reports on successive fetches;
            the last one sticks.
        job_states: statuses a deletion job reports on successive fetches; the last one sticks.
        deleting_polls: how many times a deleted storage/table still reports DELETING
            before it disappears.
        fail_on: method name -> exception raised when that method is called.
    """

    def __init__(
        self,
        *,
        tables: Sequence[Table] = (),
        connect_states: Sequence[str] = ("CREATED", "CONNECTING", "CONNECTED"),
        job_states: Sequence[str] = ("IN_PROGRESS", "SUCCEEDED"),
        deleting_polls: int = 1,
        fail_on: dict[str, Exception] | None = None,
    ) -> None:
        self.tables: dict[str, Table] = {t.unique_name: t for t in tables}
        self.storage: dict[str, StorageResource] = {
            name: StorageResource(id=f"DPO-{name}", unique_name=name, status="LIVE") for name in self.tables
        }
        self.jobs: dict[str, DeletionJob] = {}
        self.connect_states = list(connect_states)
        self.job_states = list(job_states)
        self.deleting_polls = deleting_polls
        self.fail_on = dict(fail_on or {})

        self.calls: list[tuple[str, Any]] = []
        self.created: list[CreateTableInput] = []
        self.deletion_filters: list[list[FilterInput]] = []

        self._connect_script: dict[str, list[str]] = {}
        self._job_script: dict[str, list[str]] = {}
        self._deleting: dict[tuple[str, str], int] = {}

    def _enter(self, method: str, arg: Any) -> None:
        self.calls.append((method, arg))
        exc = self.fail_on.get(method)
        if exc is not None:
            raise exc

    def called(self, method: str) -> list[Any]:
        return [arg for m, arg in self.calls if m == method]

    @staticmethod
    def _advance(script: list[str], current: str) -> str:
        if not script:
            return current
        return script.pop(0) if len(script) > 1 else script[0]

    def _deleting_or_gone(self, kind: str, name: str, store: dict[str, Any]) -> Any:
        left = self._deleting.get((kind, name))
        if left is None:
            return store.get(name)
        if left > 0:
            self._deleting[(kind, name)] = left - 1
            return store[name].model_copy(update={"status": "DELETING"})
        store.pop(name, None)
        return None

    # ---- TableApi ----------------------------------------------------------

    async def create_table(self, spec: CreateTableInput) -> Table:
        self._enter("create_table", spec)
        self.created.append(spec)
        name = spec.unique_name
        table = Table(
            id=f"DSO-{name}",
            unique_name=name,
            status="CREATED",
            webhook_url=f"https://webhooks.test/{name}",
            basic_auth=spec.basic_auth,
            unique_id=spec.unique_id,
            timestamp=spec.timestamp,
            table_settings=spec.table_settings,
        )
        self.tables[name] = table
        self.storage[name] = StorageResource(id=f"DPO-{name}", unique_name=name, status="LIVE")
        self._connect_script[name] = list(self.connect_states)
        return table

    async def fetch_table(self, unique_name: str) -> Table | None:
        self._enter("fetch_table", unique_name)
        table = self._deleting_or_gone("table", unique_name, self.tables)
        if table is None or table.status == "DELETING":
            return table
        script = self._connect_script.get(unique_name)
        if script is not None:
            table = table.model_copy(update={"status": self._advance(script, table.status)})
            self.tables[unique_name] = table
        return table

    async def fetch_storage(self, unique_name: str) -> StorageResource | None:
        self._enter("fetch_storage", unique_name)
        return self._deleting_or_gone("storage", unique_name, self.storage)

    async def create_deletion_job(self, storage_id: str, filters: Sequence[FilterInput]) -> DeletionJob:
        self._enter("create_deletion_job", storage_id)
        self.deletion_filters.append(list(filters))
        job = DeletionJob(id=f"JOB-{len(self.jobs) + 1}", status="CREATED", storage_id=storage_id)
        self.jobs[job.id] = job
        self._job_script[job.id] = list(self.job_states)
        return job

    async def fetch_deletion_job(self, job_id: str) -> DeletionJob | None:
        self._enter("fetch_deletion_job", job_id)
        job = self.jobs.get(job_id)
        if job is None:
            return None
        job = job.model_copy(update={"status": self._advance(self._job_script[job_id], job.status)})
        self.jobs[job_id] = job
        return job

    async def delete_storage(self, unique_name: str) -> str:
        self._enter("delete_storage", unique_name)
        if unique_name not in self.storage:
            raise UpstreamError(f"storage {unique_name!r} not found")
        self._deleting[("storage", unique_name)] = self.deleting_polls
        return self.storage[unique_name].id

    async def delete_table(self, unique_name: str) -> str:
        self._enter("delete_table", unique_name)
        if unique_name not in self.tables:
            raise UpstreamError(f"table {unique_name!r} not found")
        self._deleting[("table", unique_name)] = self.deleting_polls
        return self.tables[unique_name].id


class FakeIngestionClient:
    """
    Records every posted batch.

    Args:
        reject: called with each batch; returns the rejections for it.
        fail_on_post: 1-based index of the post that raises DeliveryError.
    """

    def __init__(
        self,
        *,
        reject: Callable[[Sequence[dict[str, Any]]], list[RecordRejection]] | None = None,
        fail_on_post: int | None = None,
    ) -> None:
        self.reject = reject
        self.fail_on_post = fail_on_post
        self.posts: list[tuple[str, BasicAuth | None, list[dict[str, Any]]]] = []

    async def post_events(
        self, url: str, auth: BasicAuth | None, events: Sequence[dict[str, Any]]
    ) -> list[RecordRejection]:
        if self.fail_on_post is not None and len(self.posts) + 1 == self.fail_on_post:
            raise DeliveryError(f"connection reset while posting to {url}")
        self.posts.append((url, auth, list(events)))
        return self.reject(events) if self.reject else []

    def batches(self, url_suffix: str | None = None) -> list[list[dict[str, Any]]]:
        return [ev for url, _, ev in self.posts if url_suffix is None or url.endswith(url_suffix)]


class FakeOAuthClient:
    def __init__(self, *, token: str = "test-token", fail: Exception | None = None) -> None:
        self.token = token
        self.fail = fail
        self.requests: list[tuple[str, str]] = []

    async def fetch_token(self, application_id: str, application_secret: str) -> OAuthToken:
        self.requests.append((application_id, application_secret))
        if self.fail is not None:
            raise self.fail
        return OAuthToken(access_token=self.token, expires_in=3600)


__all__ = ["FakeIngestionClient", "FakeOAuthClient", "FakeTableApi", "make_table"]
