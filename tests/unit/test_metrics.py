"""
Metric wrappers: label allowlists, batch reasons and per-instance registries.
"""

import pytest
from prometheus_client import CollectorRegistry

from destkit.observability.metrics import DestinationMetrics, SafeCounter

pytestmark = [pytest.mark.unit]


def test_unknown_label_is_rejected():
    cnt = SafeCounter("demo_total", "demo", label_names=["table"], registry=CollectorRegistry())
    cnt.labels(table="t").inc()
    with pytest.raises(ValueError, match="Unknown label"):
        cnt.labels(stream="t")


def test_batch_posted_updates_all_series(metrics):
    metrics.batch_posted("public_users", reason="bytes", records=3, size_bytes=120, rejected=1)
    metrics.batch_posted("public_users", reason="state", records=2, size_bytes=80, rejected=0)

    assert metrics.value("destkit_batches_total", table="public_users", reason="bytes") == 1
    assert metrics.value("destkit_batches_total", table="public_users", reason="state") == 1
    assert metrics.value("destkit_batch_bytes_total", table="public_users") == 200
    assert metrics.value("destkit_record_rejections_total", table="public_users") == 1
    assert metrics.value("destkit_batch_records_count", table="public_users") == 2
    assert metrics.value("destkit_batch_records_sum", table="public_users") == 5


def test_unknown_reason_is_rejected(metrics):
    with pytest.raises(ValueError, match="unknown batch reason"):
        metrics.batch_posted("public_users", reason="timer", records=1, size_bytes=1, rejected=0)
    assert metrics.value("destkit_batches_total", table="public_users", reason="timer") == 0


def test_instances_do_not_share_a_registry():
    a, b = DestinationMetrics(), DestinationMetrics()
    a.record_buffered("t")
    assert a.value("destkit_records_total", table="t") == 1
    assert b.value("destkit_records_total", table="t") == 0
