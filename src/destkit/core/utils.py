# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
destkit.core.utils
==================

Low-level helpers with **no external dependencies**:
- Deterministic raw-record identifiers (UUID-shaped SHA-256 digests).
- Compact JSON serialization used to size webhook batches.
- Basic-auth password generator (crypto-strong).
- RFC3339 timestamps for API filters.
"""

import json
import string
from datetime import UTC, datetime
from hashlib import sha256
from secrets import SystemRandom
from typing import Any

from .types import (
    DEFAULT_PASSWORD_DIGITS,
    DEFAULT_PASSWORD_LENGTH,
    DEFAULT_PASSWORD_SYMBOLS,
    TableName,
)

_PASSWORD_SYMBOLS = "~!@#$%^&*()_+-={}|[]:<>?,./"
_rng = SystemRandom()


def table_unique_name(namespace: str | None, stream: str) -> TableName:
    """Destination table name for a stream: ``"<namespace>_<stream>"`` (namespace may be empty)."""
    return f"{namespace or ''}_{stream}"


def raw_record_id(namespace: str | None, stream: str, index: int, emitted_at: int) -> str:
    """
    Deterministic identifier for the record at position `index` of a sync.

    The NUL-joined tuple (namespace, stream, index, emitted_at) is hashed with
    SHA-256 and the first 16 bytes are rendered in 8-4-4-4-12 UUID layout.
    Re-delivering the same record at the same position yields the same id.
    """
    key = "\x00".join((namespace or "", stream, str(index), str(emitted_at)))
    h = sha256(key.encode("utf-8")).hexdigest()
    return f"{h[:8]}-{h[8:12]}-{h[12:16]}-{h[16:20]}-{h[20:32]}"


def dumps(x: Any) -> bytes:
    """
    Compact JSON dump to UTF-8 bytes (ensure_ascii=False, no spaces).
    This is the encoding posted to webhooks, so it also drives batch sizing.
    """
    return json.dumps(x, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def record_size(record: Any) -> int:
    """Delivered size of one record inside a JSON array payload (element + separator)."""
    return len(dumps(record)) + 1


def generate_password(
    length: int = DEFAULT_PASSWORD_LENGTH,
    *,
    digits: int = DEFAULT_PASSWORD_DIGITS,
    symbols: int = DEFAULT_PASSWORD_SYMBOLS,
) -> str:
    """
    Generate a random password with exactly `digits` digits and `symbols` symbols;
    the remaining characters are mixed-case ASCII letters.
    """
    if length <= 0:
        raise ValueError("length must be positive")
    if digits < 0 or symbols < 0 or digits + symbols > length:
        raise ValueError("digits + symbols must fit in length")
    chars = [_rng.choice(string.digits) for _ in range(digits)]
    chars += [_rng.choice(_PASSWORD_SYMBOLS) for _ in range(symbols)]
    chars += [_rng.choice(string.ascii_letters) for _ in range(length - digits - symbols)]
    _rng.shuffle(chars)
    return "".join(chars)


def rfc3339(dt: datetime) -> str:
    """Render a datetime as UTC RFC3339 with microseconds and a 'Z' suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")
