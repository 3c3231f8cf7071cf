# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
destkit.runtime.reconciler
==========================

Bring every configured stream's destination table in line with its sync mode
before any record is delivered.

Per stream (catalog order):
  - missing table      -> build columns + shape, create, wait until CONNECTED;
  - existing+overwrite -> delete the stored rows with a deletion job, wait for it;
  - then check that the sync mode agrees with the table's uniqueness column.

Table shapes:
  - append-only: unique_id = raw-id column, timestamp = extracted-at column;
  - de-duplicating: unique_id = first primary key, ReplacingMergeTree ordered
    by the primary keys with the cursor column as version.

`teardown()` implements the full-reset path: drop every storage resource and
table that was reconciled in this run.
"""

from collections.abc import Awaitable, Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Final

from ..api.clients import TableApi
from ..api.errors import (
    ConfigurationError,
    DeletionJobFailedError,
    SyncModeMismatchError,
    UpstreamError,
)
from ..api.models import (
    BasicAuth,
    ColumnInput,
    ColumnType,
    CreateTableInput,
    DeletionJob,
    FilterInput,
    StorageResource,
    Table,
    TableSettings,
)
from ..core.config import DestinationConfig
from ..core.logging import get_logger, log_context
from ..core.time import Clock, SystemClock
from ..core.types import EXTRACTED_AT_COLUMN, RAW_ID_COLUMN, StateLabel
from ..core.utils import generate_password, rfc3339
from ..protocol.messages import ConfiguredCatalog, ConfiguredStream, DestinationSyncMode
from .poll import StateChangeOps, wait_for_state
from .typemap import to_column_type

# ---- State vocabularies ----------------------------------------------------------

TABLE_PENDING: Final[frozenset[StateLabel]] = frozenset({"CREATED", "CONNECTING"})
TABLE_READY: Final[frozenset[StateLabel]] = frozenset({"CONNECTED"})

JOB_PENDING: Final[frozenset[StateLabel]] = frozenset({"CREATED", "IN_PROGRESS"})
JOB_FINISHED: Final[frozenset[StateLabel]] = frozenset({"SUCCEEDED", "FAILED"})
JOB_FAILED: Final[StateLabel] = "FAILED"

DELETING: Final[frozenset[StateLabel]] = frozenset({"DELETING"})
DELETED: Final[StateLabel] = "DELETED"

DELETE_OPERATOR: Final[str] = "LESS_THAN_OR_EQUAL_TO"

SYNTHETIC_COLUMNS: Final[tuple[ColumnInput, ...]] = (
    ColumnInput.of(RAW_ID_COLUMN, ColumnType.STRING, nullable=False),
    ColumnInput.of(EXTRACTED_AT_COLUMN, ColumnType.TIMESTAMP, nullable=False),
)


@dataclass
class ReconciledTables:
    """
    Tables ready to receive records, keyed by unique name in catalog order.
    Built once by `reconcile()`; read-only afterwards.
    """

    tables: dict[str, Table] = field(default_factory=dict)
    is_full_reset: bool = False

    def __contains__(self, name: object) -> bool:
        return name in self.tables

    def __getitem__(self, name: str) -> Table:
        return self.tables[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.tables)

    def __len__(self) -> int:
        return len(self.tables)


def primary_key_columns(stream: ConfiguredStream) -> list[str]:
    """Flatten primary-key paths; nested (multi-element) paths are rejected."""
    out: list[str] = []
    for path in stream.primary_key:
        if len(path) != 1:
            raise ConfigurationError(
                f"unexpected primary key length {len(path)} for table {stream.table_name!r}; "
                "nested primary keys are not supported"
            )
        out.append(path[0])
    return out


def build_create_input(stream: ConfiguredStream, *, password: str | None = None) -> CreateTableInput:
    """
    Derive the creation request for a stream's table.

    Raises ConfigurationError (or UnsupportedTypeError) before anything is
    created when the stream cannot be represented.
    """
    name = stream.table_name
    pk = primary_key_columns(stream)
    cursor = stream.cursor
    dedup = stream.destination_sync_mode == DestinationSyncMode.append_dedup

    if dedup and not pk:
        raise ConfigurationError(f"append_dedup requires at least one primary key column; none found for table {name!r}")
    if dedup and not cursor:
        raise ConfigurationError(f"append_dedup requires a cursor column; none found for table {name!r}")

    synthetic = {c.name for c in SYNTHETIC_COLUMNS}
    columns = [
        ColumnInput.of(prop_name, to_column_type(prop), nullable=prop_name not in pk and prop_name != cursor)
        for prop_name, prop in stream.stream.json_schema.properties.items()
        if prop_name not in synthetic
    ]
    columns.extend(SYNTHETIC_COLUMNS)

    auth = BasicAuth(username=stream.stream.namespace or "", password=password or generate_password())

    if dedup:
        return CreateTableInput(
            unique_name=name,
            columns=columns,
            basic_auth=auth,
            unique_id=pk[0],
            table_settings=TableSettings(primary_key=[], partition_by=[], order_by=pk, ver=cursor),
        )
    return CreateTableInput(
        unique_name=name,
        columns=columns,
        basic_auth=auth,
        unique_id=RAW_ID_COLUMN,
        timestamp=EXTRACTED_AT_COLUMN,
    )


def check_table_shape(stream: ConfiguredStream, table: Table) -> None:
    """The sync mode must agree with the table's uniqueness column."""
    raw_id_unique = table.unique_id == RAW_ID_COLUMN
    mode = stream.destination_sync_mode
    if raw_id_unique and mode == DestinationSyncMode.append_dedup:
        raise SyncModeMismatchError(
            f"append_dedup destination sync mode is not compatible with table {table.unique_name!r} "
            f"(unique ID is {RAW_ID_COLUMN})"
        )
    if not raw_id_unique and mode == DestinationSyncMode.append:
        raise SyncModeMismatchError(
            f"append destination sync mode is not compatible with table {table.unique_name!r} "
            f"(de-duplicating on {table.unique_id!r})"
        )


class TableReconciler:
    """
    Reconcile destination tables against a configured catalog.
    `clock` is injectable for tests (polling sleeps and deletion cut-off time).
    """

    def __init__(self, api: TableApi, *, cfg: DestinationConfig, clock: Clock | None = None) -> None:
        self.api = api
        self.cfg = cfg
        self.clock: Clock = clock or SystemClock()
        self.log = get_logger("runtime.reconciler")

    # ---- reconcile -----------------------------------------------------------

    async def reconcile(self, catalog: ConfiguredCatalog) -> ReconciledTables:
        out = ReconciledTables(
            is_full_reset=all(s.destination_sync_mode == DestinationSyncMode.overwrite for s in catalog.streams)
        )
        for stream in catalog.streams:
            name = stream.table_name
            with log_context(table=name, mode=stream.destination_sync_mode.value):
                table = await self.api.fetch_table(name)
                if table is None:
                    self.log.info("table not found, creating")
                    table = await self._create(stream)
                elif stream.destination_sync_mode == DestinationSyncMode.overwrite:
                    await self._truncate(name)
                check_table_shape(stream, table)
                out.tables[name] = table
                self.log.debug("table reconciled", table_id=table.id, unique_id=table.unique_id)
        return out

    async def _create(self, stream: ConfiguredStream) -> Table:
        spec = build_create_input(stream)
        created = await self.api.create_table(spec)
        self.log.debug("table created", table_id=created.id, status=created.status)

        async def refresh() -> tuple[Table, StateLabel]:
            t = await self.api.fetch_table(spec.unique_name)
            if t is None:
                raise UpstreamError(f"table {spec.unique_name!r} not found while waiting for it to connect")
            return t, t.status

        return await wait_for_state(
            StateChangeOps(
                refresh=refresh,
                pending=TABLE_PENDING,
                target=TABLE_READY,
                timeout_ms=self.cfg.table_connect_timeout_ms,
                delay_ms=self.cfg.poll_delay_ms,
                resource=f"table {spec.unique_name!r}",
            ),
            clock=self.clock,
        )

    async def _truncate(self, name: str) -> None:
        """Delete every row extracted up to now from the table's storage."""
        storage = await self.api.fetch_storage(name)
        if storage is None:
            raise UpstreamError(f"storage for table {name!r} not found")

        cutoff = rfc3339(self.clock.now_dt())
        job = await self.api.create_deletion_job(
            storage.id, [FilterInput(column=EXTRACTED_AT_COLUMN, operator=DELETE_OPERATOR, value=cutoff)]
        )
        self.log.info("deletion job created", job_id=job.id, storage_id=storage.id, cutoff=cutoff)

        async def refresh() -> tuple[DeletionJob, StateLabel]:
            j = await self.api.fetch_deletion_job(job.id)
            if j is None:
                raise UpstreamError(f"deletion job {job.id!r} not found")
            return j, j.status

        done = await wait_for_state(
            StateChangeOps(
                refresh=refresh,
                pending=JOB_PENDING,
                target=JOB_FINISHED,
                timeout_ms=self.cfg.deletion_job_timeout_ms,
                delay_ms=self.cfg.poll_delay_ms,
                resource=f"deletion job {job.id!r}",
            ),
            clock=self.clock,
        )
        if done.status == JOB_FAILED:
            raise DeletionJobFailedError(f"deletion job {job.id!r} failed for storage {storage.id!r} of table {name!r}")
        self.log.debug("deletion job succeeded", job_id=job.id, storage_id=storage.id)

    # ---- teardown --------------------------------------------------------------

    async def teardown(self, tables: Mapping[str, Table] | ReconciledTables) -> None:
        """
        Full reset: delete all storage, then each table once its storage is
        gone, then wait for every table to disappear. Not-found counts as deleted.
        """
        names = list(tables)
        self.log.info("full reset sync, all tables will be deleted", tables=len(names))

        for name in names:
            await self.api.delete_storage(name)

        for name in names:
            await self._wait_deleted(name, self.api.fetch_storage, what="storage")
            await self.api.delete_table(name)

        for name in names:
            await self._wait_deleted(name, self.api.fetch_table, what="table")

    async def _wait_deleted(
        self, name: str, fetch: Callable[[str], Awaitable[StorageResource | Table | None]], *, what: str
    ) -> None:
        async def refresh() -> tuple[StorageResource | Table | None, StateLabel]:
            res = await fetch(name)
            if res is None:
                return None, DELETED
            return res, res.status

        await wait_for_state(
            StateChangeOps(
                refresh=refresh,
                pending=DELETING,
                target=frozenset({DELETED}),
                timeout_ms=self.cfg.table_delete_timeout_ms,
                delay_ms=self.cfg.poll_delay_ms,
                resource=f"{what} {name!r}",
            ),
            clock=self.clock,
        )


__all__ = [
    "ReconciledTables",
    "TableReconciler",
    "build_create_input",
    "check_table_shape",
    "primary_key_columns",
]
