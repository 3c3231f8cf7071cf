# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Command line entry point.

    destkit spec
    destkit check --config config.json
    destkit write --config config.json --catalog catalog.json < messages.jsonl

Input lines are read from stdin as bytes and decoded per message.
All output goes to stdout as Airbyte protocol messages (LOG lines included).
A fatal error is logged once at ERROR level and the process exits with 1.
"""

import argparse
import asyncio
import sys
from collections.abc import Sequence
from typing import IO, Any

from .api.errors import DestinationError
from .core.logging import configure_from_env, get_logger
from .protocol.emitter import MessageEmitter
from .runtime.destination import Destination

log = get_logger("cli")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="destkit", description="Airbyte destination delivering records to webhook tables.")
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("spec", help="Print the connector specification")

    check = sub.add_parser("check", help="Validate the configuration and credentials")
    check.add_argument("--config", required=True, help="Connector configuration file")

    write = sub.add_parser("write", help="Write records read from stdin")
    write.add_argument("--config", required=True, help="Connector configuration file")
    write.add_argument("--catalog", required=True, help="Configured catalog file")
    return ap


async def _run(args: argparse.Namespace, dest: Destination, stdin: IO[Any]) -> None:
    if args.command == "spec":
        dest.emitter.spec(dest.spec())
    elif args.command == "check":
        dest.emitter.connection_status(await dest.check(args.config))
    elif args.command == "write":
        await dest.write(args.config, args.catalog, stdin)


def main(argv: Sequence[str] | None = None, *, stdin: IO[Any] | None = None, stdout: IO[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    out = stdout or sys.stdout
    configure_from_env(stream=out)

    dest = Destination(emitter=MessageEmitter(out))
    try:
        asyncio.run(_run(args, dest, stdin or sys.stdin.buffer))
    except DestinationError as e:
        log.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
