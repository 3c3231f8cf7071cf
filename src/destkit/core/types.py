# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
destkit.core.types
==================

Shared type aliases and small constants used across the codebase.
Keep this module **tiny** and dependency-free.

Guidelines:
- Prefer narrow aliases for clarity (e.g., MonotonicMs vs generic int).
- Avoid importing protocol or API models here.
"""

from typing import Final

# ---- Time & IDs --------------------------------------------------------------

Millis = int
MonotonicMs = int  # process-local monotonic time (ms)

TableName = str  # destination table unique name: "<namespace>_<stream>"
StateLabel = str

# ---- Synthetic columns -------------------------------------------------------

RAW_ID_COLUMN: Final[str] = "_airbyte_raw_id"
EXTRACTED_AT_COLUMN: Final[str] = "_airbyte_extracted_at"

# ---- Batching defaults -------------------------------------------------------

# Webhook payloads must stay under 1 MiB.
DEFAULT_MAX_BYTES_PER_BATCH: Final[int] = 1_047_000
DEFAULT_MAX_RECORDS_PER_BATCH: Final[int] = 10_000

# ---- Basic-auth password generation -------------------------------------------

DEFAULT_PASSWORD_LENGTH: Final[int] = 18
DEFAULT_PASSWORD_DIGITS: Final[int] = 2
DEFAULT_PASSWORD_SYMBOLS: Final[int] = 2


__all__ = [
    # time/ids
    "Millis",
    "MonotonicMs",
    "TableName",
    "StateLabel",
    # constants
    "RAW_ID_COLUMN",
    "EXTRACTED_AT_COLUMN",
    "DEFAULT_MAX_BYTES_PER_BATCH",
    "DEFAULT_MAX_RECORDS_PER_BATCH",
    "DEFAULT_PASSWORD_LENGTH",
    "DEFAULT_PASSWORD_DIGITS",
    "DEFAULT_PASSWORD_SYMBOLS",
]
