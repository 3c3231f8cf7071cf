# SPDX-License-Identifier: Apache-2.0
"""Sync orchestration and batching engine."""

from .batching import BatchBuffer, BatchingPipeline, PipelineResult
from .destination import Destination, WriteResult
from .poll import StateChangeOps, wait_for_state
from .reconciler import ReconciledTables, TableReconciler
from .typemap import to_column_type

__all__ = [
    "BatchBuffer",
    "BatchingPipeline",
    "Destination",
    "PipelineResult",
    "ReconciledTables",
    "StateChangeOps",
    "TableReconciler",
    "WriteResult",
    "to_column_type",
    "wait_for_state",
]
