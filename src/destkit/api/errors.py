# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Error taxonomy for the destination.

Three families, all fatal when raised (per-record delivery rejections are
reported as values, never raised):

- ConfigurationError: malformed config/catalog/input, unsupported column
  types, sync-mode/table-shape conflicts.
- UpstreamError: the table/job API or OAuth endpoint failed, or a polled
  resource timed out / reached an unexpected state.
- DeliveryError: a webhook batch could not be posted at all.

There is no retry anywhere in the engine.
"""

from collections.abc import Collection


class DestinationError(Exception):
    """Base class for all destination errors."""

    ...


# ---- Configuration ------------------------------------------------------------


class ConfigurationError(DestinationError):
    """Invalid connector configuration, catalog or input; retrying is pointless."""

    ...


class MalformedMessageError(ConfigurationError):
    """An input line is not a valid protocol message."""

    ...


class UnsupportedTypeError(ConfigurationError):
    """A declared column type has no destination counterpart."""

    def __init__(self, type_: str, format_: str | None, airbyte_type: str | None) -> None:
        self.type = type_
        self.format = format_
        self.airbyte_type = airbyte_type
        super().__init__(f"airbyte type {type_}:{format_ or ''}:{airbyte_type or ''} not supported")


class SyncModeMismatchError(ConfigurationError):
    """The destination sync mode disagrees with the existing table's shape."""

    ...


# ---- Upstream -----------------------------------------------------------------


class UpstreamError(DestinationError):
    """An external API call failed; the message names the resource involved."""

    ...


class AuthenticationError(UpstreamError):
    """Access token exchange was rejected or failed."""

    ...


class PollTimeoutError(UpstreamError):
    """A polled resource did not reach a target state before the deadline."""

    def __init__(self, target: Collection[str], resource: str | None = None) -> None:
        self.target = sorted(target)
        self.resource = resource
        where = f" ({resource})" if resource else ""
        super().__init__(f"timeout waiting for state to change to {self.target}{where}")


class UnexpectedStateError(UpstreamError):
    """A polled resource reported a state that is neither pending nor target."""

    def __init__(self, state: str, target: Collection[str], resource: str | None = None) -> None:
        self.state = state
        self.target = sorted(target)
        self.resource = resource
        where = f" ({resource})" if resource else ""
        super().__init__(f"received an unexpected state {state!r}; expected states are {self.target}{where}")


class DeletionJobFailedError(UpstreamError):
    """A deletion job finished in the FAILED state."""

    ...


# ---- Delivery -----------------------------------------------------------------


class DeliveryError(DestinationError):
    """A batch could not be posted to the ingestion endpoint (transport-level failure)."""

    ...


__all__ = [
    "DestinationError",
    "ConfigurationError",
    "MalformedMessageError",
    "UnsupportedTypeError",
    "SyncModeMismatchError",
    "UpstreamError",
    "AuthenticationError",
    "PollTimeoutError",
    "UnexpectedStateError",
    "DeletionJobFailedError",
    "DeliveryError",
]
