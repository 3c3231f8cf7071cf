# conftest.py
from __future__ import annotations

import io
import json
import os
import uuid
from pathlib import Path
from typing import Any

import pytest

from destkit.core.config import DestinationConfig
from destkit.core.logging import (
    bind_context,
    configure_from_env,
    enable_stdout_logging,
    get_logger,
    log_context,
)
from destkit.core.time import ManualClock
from destkit.observability.metrics import DestinationMetrics
from destkit.protocol.emitter import MessageEmitter


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast, in-memory tests of a single component")
    config.addinivalue_line("markers", "integration: full connector flow against in-memory fakes")


def pytest_addoption(parser):
    parser.addoption(
        "--log-airbyte",
        action="store_true",
        default=False,
        help="Emit destkit logs as Airbyte LOG envelopes during tests",
    )


@pytest.fixture(scope="session", autouse=True)
def _configure_destkit_logging(request):
    configure_from_env()
    prefer_airbyte = request.config.getoption("--log-airbyte")
    # Human-readable by default unless the env already asked for stdout logs.
    if os.getenv("DESTKIT_LOG_STDOUT", "").lower() not in ("1", "true", "yes", "on"):
        enable_stdout_logging(level="DEBUG", pretty=not prefer_airbyte)
    bind_context(role="pytest")


@pytest.fixture(scope="session")
def session_run_id():
    return uuid.uuid4().hex[:8]


@pytest.fixture(autouse=True)
def _test_log_context(request, session_run_id):
    log = get_logger("test")
    with log_context(test=request.node.name, test_run=session_run_id):
        log.debug("pytest.test.start")
        yield


@pytest.fixture
def tlog():
    return get_logger("test")


# ---- Config / collaborators ---------------------------------------------------


@pytest.fixture
def cfg() -> DestinationConfig:
    return DestinationConfig(application_id="APP0001", application_secret="s3cret")


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def out() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def emitter(out) -> MessageEmitter:
    return MessageEmitter(out)


@pytest.fixture
def metrics() -> DestinationMetrics:
    return DestinationMetrics()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    p = tmp_path / "config.json"
    p.write_text(json.dumps({"application_id": "APP0001", "application_secret": "s3cret"}), encoding="utf-8")
    return p


@pytest.fixture
def write_json(tmp_path: Path):
    def _write(name: str, obj: Any) -> Path:
        p = tmp_path / name
        p.write_text(json.dumps(obj), encoding="utf-8")
        return p

    return _write
