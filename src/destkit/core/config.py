# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
destkit.core.config
===================

Strongly-typed destination configuration.
- Loaded from the connector config JSON handed over by the platform.
- Derives millisecond fields from seconds to avoid repeated conversions.
- Provides small env overrides for convenience.

Unlike library defaults elsewhere, a missing or unreadable config file is a
fatal ConfigurationError: the connector cannot authenticate without it.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..api.errors import ConfigurationError
from .types import DEFAULT_MAX_BYTES_PER_BATCH, DEFAULT_MAX_RECORDS_PER_BATCH

_ENV_INT_FIELDS = {
    "DESTKIT_MAX_BYTES_PER_BATCH": "max_bytes_per_batch",
    "DESTKIT_MAX_RECORDS_PER_BATCH": "max_records_per_batch",
}
_ENV_STR_FIELDS = {
    "DESTKIT_API_URL": "api_url",
    "DESTKIT_OAUTH_URL": "oauth_url",
}


def _load_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"unable to read connector configuration: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError("unable to read connector configuration: expected a JSON object")
    return data


# ---------------------------------------------------------------------------


@dataclass
class DestinationConfig:
    """Destination configuration loaded from JSON/env with derived millisecond fields."""

    # ---- Credentials
    application_id: str = ""
    application_secret: str = ""

    # ---- Endpoints
    api_url: str = "https://api.us-east-2.propeldata.com/graphql"
    oauth_url: str = "https://auth.us-east-2.propeldata.com/oauth2/token"
    http_timeout_sec: float = 30.0

    # ---- Batching
    max_bytes_per_batch: int = DEFAULT_MAX_BYTES_PER_BATCH
    max_records_per_batch: int = DEFAULT_MAX_RECORDS_PER_BATCH

    # ---- Polling (seconds)
    table_connect_timeout_sec: float = 180
    deletion_job_timeout_sec: float = 1200
    table_delete_timeout_sec: float = 1200
    poll_delay_sec: float = 3.0

    # ---- Derived (ms)
    table_connect_timeout_ms: int = 0
    deletion_job_timeout_ms: int = 0
    table_delete_timeout_ms: int = 0
    poll_delay_ms: int = 0

    # ---- Methods ------------------------------------------------------------

    def __post_init__(self) -> None:
        if not isinstance(self.application_id, str) or not self.application_id:
            raise ConfigurationError("application_id must be a non-empty string")
        if not isinstance(self.application_secret, str) or not self.application_secret:
            raise ConfigurationError("application_secret must be a non-empty string")
        if self.max_bytes_per_batch <= 0:
            raise ConfigurationError("max_bytes_per_batch must be positive")
        if self.max_records_per_batch <= 0:
            raise ConfigurationError("max_records_per_batch must be positive")
        if self.poll_delay_sec < 0:
            raise ConfigurationError("poll_delay_sec must be non-negative")
        self._derive_ms()

    def _derive_ms(self) -> None:
        """Populate millisecond fields derived from second-based values."""
        self.table_connect_timeout_ms = int(self.table_connect_timeout_sec * 1000)
        self.deletion_job_timeout_ms = int(self.deletion_job_timeout_sec * 1000)
        self.table_delete_timeout_ms = int(self.table_delete_timeout_sec * 1000)
        self.poll_delay_ms = int(self.poll_delay_sec * 1000)

    # Loader
    @classmethod
    def load(cls, path: Path | str | None = None, *, overrides: dict[str, Any] | None = None) -> DestinationConfig:
        """
        Load config from the JSON file (if provided), then apply env and overrides.

        Env overrides:
          - DESTKIT_API_URL, DESTKIT_OAUTH_URL
          - DESTKIT_MAX_BYTES_PER_BATCH, DESTKIT_MAX_RECORDS_PER_BATCH
        """
        data: dict[str, Any] = {}

        # File
        if path:
            data.update(_load_json(Path(path)))

        # Env
        for env, key in _ENV_STR_FIELDS.items():
            if os.getenv(env):
                data[key] = os.environ[env]
        for env, key in _ENV_INT_FIELDS.items():
            if os.getenv(env):
                try:
                    data[key] = int(os.environ[env])
                except ValueError as e:
                    raise ConfigurationError(f"{env} must be an integer") from e

        # Overrides
        if overrides:
            data.update(overrides)

        known = set(cls.__dataclass_fields__)
        try:
            return cls(**{k: v for k, v in data.items() if k in known and not k.endswith("_ms")})
        except TypeError as e:
            raise ConfigurationError(f"invalid connector configuration: {e}") from e
