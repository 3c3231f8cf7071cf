# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Outbound protocol writer: one compact JSON line per message, flushed
immediately so the platform sees checkpoints as soon as they are safe.
"""

import json
import sys
from typing import IO, Any

from .messages import (
    CheckStatus,
    ConnectionStatus,
    ConnectorSpecification,
    Message,
    MessageType,
)


class MessageEmitter:
    def __init__(self, stream: IO[str] | None = None) -> None:
        self._stream = stream or sys.stdout
        self.emitted: int = 0

    def _write(self, msg: Message | dict[str, Any]) -> None:
        wire = msg.to_wire() if isinstance(msg, Message) else msg
        line = json.dumps(wire, ensure_ascii=False, separators=(",", ":"))
        self._stream.write(line + "\n")
        self._stream.flush()
        self.emitted += 1

    def state(self, state: dict[str, Any]) -> None:
        """Forward a checkpoint payload unchanged (nulls included)."""
        self._write({"type": MessageType.STATE.value, "state": state})

    def spec(self, spec: ConnectorSpecification) -> None:
        self._write(Message(type=MessageType.SPEC.value, spec=spec))

    def connection_status(self, status: ConnectionStatus) -> None:
        self._write(Message(type=MessageType.CONNECTION_STATUS.value, connection_status=status))


def failed(message: str) -> ConnectionStatus:
    return ConnectionStatus(status=CheckStatus.FAILED, message=message)


def succeeded(message: str) -> ConnectionStatus:
    return ConnectionStatus(status=CheckStatus.SUCCEEDED, message=message)


__all__ = ["MessageEmitter", "failed", "succeeded"]
