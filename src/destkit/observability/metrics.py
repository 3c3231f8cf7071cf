# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
destkit.observability.metrics
=============================

Prometheus metrics for the batching pipeline.

- Label-validated metric wrappers (SafeCounter/SafeHistogram) keep label sets
  fixed and cardinality low (one `table` label per stream).
- `DestinationMetrics` owns one registry per instance, so several pipelines
  (and tests) never collide on metric names.
"""

from collections.abc import Iterable, Mapping, Sequence
from typing import Final

from prometheus_client import CollectorRegistry, Counter, Histogram

__all__ = [
    "BATCH_REASONS",
    "DestinationMetrics",
    "SafeCounter",
    "SafeHistogram",
]

# Why a batch was flushed.
BATCH_REASONS: Final[frozenset[str]] = frozenset({"bytes", "count", "state", "eof"})

_RECORD_BUCKETS: Final[tuple[float, ...]] = (1, 10, 100, 500, 1_000, 2_500, 5_000, 10_000)


# ---- Safe metric wrappers ----------------------------------------------------


class _LabelChecker:
    """Validate label names against an allowlist to keep cardinality under control."""

    __slots__ = ("_allowed",)

    def __init__(self, allowed: Iterable[str] | None) -> None:
        self._allowed = frozenset(allowed or ())

    def validate(self, labels: Mapping[str, str]) -> None:
        unknown = [k for k in labels if k not in self._allowed]
        if unknown:
            raise ValueError(f"Unknown label(s) for metric: {unknown}; allowed={sorted(self._allowed)}")


class SafeCounter:
    """
    Counter wrapper that validates label names against an allowlist.

    Example:
        cnt = SafeCounter("destkit_records_total", "Records buffered", label_names=["table"], registry=reg)
        cnt.labels(table="public_users").inc()
    """

    def __init__(
        self,
        name: str,
        documentation: str,
        *,
        label_names: Sequence[str],
        registry: CollectorRegistry,
    ) -> None:
        self._checker = _LabelChecker(label_names)
        self._metric = Counter(name, documentation, labelnames=list(label_names), registry=registry)

    def labels(self, **labels: str):
        self._checker.validate(labels)
        return self._metric.labels(**labels)


class SafeHistogram:
    """Histogram wrapper that validates label names against an allowlist."""

    def __init__(
        self,
        name: str,
        documentation: str,
        *,
        label_names: Sequence[str],
        registry: CollectorRegistry,
        buckets: Sequence[float] | None = None,
    ) -> None:
        self._checker = _LabelChecker(label_names)
        self._metric = Histogram(
            name,
            documentation,
            labelnames=list(label_names),
            registry=registry,
            buckets=list(buckets) if buckets is not None else Histogram.DEFAULT_BUCKETS,
        )

    def labels(self, **labels: str):
        self._checker.validate(labels)
        return self._metric.labels(**labels)


# ---- Destination metrics -------------------------------------------------------


class DestinationMetrics:
    """Counters and histograms updated by the batching pipeline."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.records = SafeCounter(
            "destkit_records_total", "Records accepted into a batch buffer", label_names=["table"], registry=self.registry
        )
        self.batches = SafeCounter(
            "destkit_batches_total",
            "Batches posted to the ingestion endpoint",
            label_names=["table", "reason"],
            registry=self.registry,
        )
        self.batch_bytes = SafeCounter(
            "destkit_batch_bytes_total", "Serialized bytes posted", label_names=["table"], registry=self.registry
        )
        self.rejections = SafeCounter(
            "destkit_record_rejections_total",
            "Records refused by the ingestion endpoint",
            label_names=["table"],
            registry=self.registry,
        )
        self.batch_records = SafeHistogram(
            "destkit_batch_records",
            "Records per posted batch",
            label_names=["table"],
            registry=self.registry,
            buckets=_RECORD_BUCKETS,
        )

    def record_buffered(self, table: str) -> None:
        self.records.labels(table=table).inc()

    def batch_posted(self, table: str, *, reason: str, records: int, size_bytes: int, rejected: int) -> None:
        if reason not in BATCH_REASONS:
            raise ValueError(f"unknown batch reason {reason!r}")
        self.batches.labels(table=table, reason=reason).inc()
        self.batch_bytes.labels(table=table).inc(size_bytes)
        self.batch_records.labels(table=table).observe(records)
        if rejected:
            self.rejections.labels(table=table).inc(rejected)

    def value(self, name: str, **labels: str) -> float:
        """Current sample value (0.0 when never observed); handy for tests and debug logs."""
        v = self.registry.get_sample_value(name, labels)
        return 0.0 if v is None else v
