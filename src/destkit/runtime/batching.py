# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
destkit.runtime.batching
========================

Multiplex one ordered message stream across per-table batch buffers.

Rules:
  - RECORD: enrich with the raw-id and extracted-at columns, flush the
    target buffer first if adding the record would cross the record-count
    or byte ceiling, then append.
  - STATE: flush every buffer (catalog order), then forward the checkpoint.
    A checkpoint is only emitted once everything before it was delivered.
  - anything else is ignored.
  - end of input: flush what is left.

Per-record rejections from the endpoint are logged and counted; they never
stop the run. A batch that cannot be posted at all is fatal (DeliveryError).
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from ..api.clients import IngestionClient
from ..api.errors import ConfigurationError, DeliveryError
from ..api.models import Table
from ..core.config import DestinationConfig
from ..core.logging import get_logger, log_context
from ..core.types import EXTRACTED_AT_COLUMN, RAW_ID_COLUMN
from ..core.utils import raw_record_id, record_size
from ..observability.metrics import DestinationMetrics
from ..protocol.emitter import MessageEmitter
from ..protocol.messages import MessageType, RecordMessage, parse_message
from .reconciler import ReconciledTables


@dataclass
class BatchBuffer:
    """Pending records of one table plus their serialized size."""

    table: Table
    records: list[dict[str, Any]] = field(default_factory=list)
    size_bytes: int = 0

    def __len__(self) -> int:
        return len(self.records)

    def append(self, record: dict[str, Any], size: int) -> None:
        self.records.append(record)
        self.size_bytes += size

    def clear(self) -> None:
        self.records = []
        self.size_bytes = 0


@dataclass
class PipelineResult:
    records: int = 0
    batches: int = 0
    rejected: int = 0
    last_state: dict[str, Any] | None = None


def enrich(record: RecordMessage, index: int) -> dict[str, Any]:
    """Copy of the record payload with the two synthetic columns added."""
    data = dict(record.data)
    data[RAW_ID_COLUMN] = raw_record_id(record.namespace, record.stream, index, record.emitted_at)
    data[EXTRACTED_AT_COLUMN] = record.emitted_at
    return data


class BatchingPipeline:
    """
    Stateful, single-use pipeline over reconciled tables.
    Buffers are created empty for every table and keyed by unique name.
    """

    def __init__(
        self,
        tables: ReconciledTables,
        ingestion: IngestionClient,
        emitter: MessageEmitter,
        *,
        cfg: DestinationConfig,
        metrics: DestinationMetrics | None = None,
    ) -> None:
        self.ingestion = ingestion
        self.emitter = emitter
        self.max_bytes = cfg.max_bytes_per_batch
        self.max_records = cfg.max_records_per_batch
        self.metrics = metrics or DestinationMetrics()
        self.buffers: dict[str, BatchBuffer] = {name: BatchBuffer(table=tables[name]) for name in tables}
        self.result = PipelineResult()
        self.log = get_logger("runtime.batching")

    async def run(self, lines: Iterable[str | bytes]) -> PipelineResult:
        for line in lines:
            msg = parse_message(line)
            if msg is None:
                continue
            if msg.type == MessageType.RECORD and msg.record is not None:
                await self._on_record(msg.record)
            elif msg.type == MessageType.STATE and msg.state is not None:
                await self._on_state(msg.state)

        for name in self.buffers:
            await self.flush(name, reason="eof")
        self.log.info(
            "input exhausted",
            records=self.result.records,
            batches=self.result.batches,
            rejected=self.result.rejected,
        )
        return self.result

    async def _on_record(self, record: RecordMessage) -> None:
        name = record.table_name
        buf = self.buffers.get(name)
        if buf is None:
            raise ConfigurationError(
                f"record for stream {record.stream!r} (namespace {record.namespace!r}) is not in the configured catalog"
            )

        data = enrich(record, self.result.records)
        size = record_size(data)

        if len(buf) + 1 > self.max_records:
            self.log.debug("max batch records reached", table=name, records=len(buf))
            await self.flush(name, reason="count")
        elif buf.size_bytes + size > self.max_bytes:
            self.log.debug("max batch size reached", table=name, size_bytes=buf.size_bytes)
            await self.flush(name, reason="bytes")

        buf.append(data, size)
        self.result.records += 1
        self.metrics.record_buffered(name)

    async def _on_state(self, state: dict[str, Any]) -> None:
        for name in self.buffers:
            await self.flush(name, reason="state")
        self.emitter.state(state)
        self.result.last_state = state

    async def flush(self, name: str, *, reason: str) -> None:
        """Post the buffer as one request and clear it. Empty buffers are skipped."""
        buf = self.buffers[name]
        if not buf.records:
            return

        table = buf.table
        count, size = len(buf), buf.size_bytes
        with log_context(table=name):
            try:
                rejections = await self.ingestion.post_events(table.webhook_url, table.basic_auth, buf.records)
            except DeliveryError as e:
                raise DeliveryError(f"failed to publish {count} events for table {name!r}: {e}") from e

            for r in rejections:
                self.log.error("failed to store event", index=r.index, error=r.message)

            self.metrics.batch_posted(name, reason=reason, records=count, size_bytes=size, rejected=len(rejections))
            self.log.debug("batch posted", records=count, size_bytes=size, reason=reason, rejected=len(rejections))

        self.result.batches += 1
        self.result.rejected += len(rejections)
        buf.clear()


__all__ = ["BatchBuffer", "BatchingPipeline", "PipelineResult", "enrich"]
