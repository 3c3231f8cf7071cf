# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
destkit.runtime.destination
===========================

Connector entry points: `spec`, `check`, `write`.

`write` drives one sync:
  1) load config + configured catalog (fatal ConfigurationError when invalid);
  2) exchange the application credentials for an access token;
  3) reconcile every stream's table;
  4) run the batching pipeline over the input;
  5) on a full reset (every stream overwrite, zero records) drop all tables;
  6) re-emit the last checkpoint once everything was delivered.

Collaborators are injectable so tests can run the whole flow in memory; by
default the httpx clients from `destkit.clients` are used.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..api.clients import IngestionClient, OAuthClient, TableApi
from ..api.errors import ConfigurationError, DestinationError
from ..clients.graphql import GraphQLTableApi
from ..clients.oauth import OAuthTokenClient
from ..clients.webhook import WebhookClient
from ..core.config import DestinationConfig
from ..core.logging import bind_context, get_logger
from ..core.time import Clock, SystemClock
from ..observability.metrics import DestinationMetrics
from ..protocol.emitter import MessageEmitter, failed, succeeded
from ..protocol.messages import (
    ConnectionStatus,
    ConnectorSpecification,
    DestinationSyncMode,
    load_catalog,
)
from .batching import BatchingPipeline
from .reconciler import TableReconciler

TableApiFactory = Callable[[DestinationConfig, str], TableApi]

DOCUMENTATION_URL = "https://propeldata.com/docs"


@dataclass
class WriteResult:
    records: int = 0
    batches: int = 0
    rejected: int = 0
    last_state: dict[str, Any] | None = None
    full_reset: bool = False


def _default_table_api(cfg: DestinationConfig, access_token: str) -> TableApi:
    return GraphQLTableApi(cfg.api_url, access_token, timeout_sec=cfg.http_timeout_sec)


async def _aclose(client: Any) -> None:
    close = getattr(client, "aclose", None)
    if close is not None:
        await close()


class Destination:
    """
    Airbyte destination delivering records to webhook-backed tables.
    `clock` and all clients are injectable for tests.
    """

    def __init__(
        self,
        *,
        emitter: MessageEmitter | None = None,
        oauth: OAuthClient | None = None,
        ingestion: IngestionClient | None = None,
        table_api_factory: TableApiFactory | None = None,
        clock: Clock | None = None,
        metrics: DestinationMetrics | None = None,
        config_overrides: dict[str, Any] | None = None,
    ) -> None:
        self.emitter = emitter or MessageEmitter()
        self._oauth = oauth
        self._ingestion = ingestion
        self._table_api_factory = table_api_factory or _default_table_api
        self.clock: Clock = clock or SystemClock()
        self.metrics = metrics or DestinationMetrics()
        self._overrides = config_overrides
        self.log = get_logger("destination")

    # ---- spec ----------------------------------------------------------------

    def spec(self) -> ConnectorSpecification:
        return ConnectorSpecification(
            documentation_url=DOCUMENTATION_URL,
            changelog_url=DOCUMENTATION_URL,
            supports_incremental=True,
            supports_normalization=False,
            supports_dbt=False,
            supported_destination_sync_modes=[
                DestinationSyncMode.overwrite,
                DestinationSyncMode.append,
                DestinationSyncMode.append_dedup,
            ],
            connection_specification={
                "$schema": "http://json-schema.org/draft-07/schema#",
                "title": "Destination Spec",
                "type": "object",
                "required": ["application_id", "application_secret"],
                "properties": {
                    "application_id": {
                        "title": "Application ID",
                        "description": "Application ID used to request access tokens",
                        "type": "string",
                        "examples": ["APP00000000000000000000000000"],
                    },
                    "application_secret": {
                        "title": "Application secret",
                        "description": "Application secret used to request access tokens",
                        "type": "string",
                        "airbyte_secret": True,
                    },
                },
            },
        )

    # ---- check ---------------------------------------------------------------

    async def check(self, config_path: Path | str) -> ConnectionStatus:
        """Validate the configuration and try to obtain an access token. Never raises for those two."""
        self.log.debug("validating API connection")
        try:
            cfg = DestinationConfig.load(config_path, overrides=self._overrides)
        except ConfigurationError as e:
            self.log.error("configuration is invalid", error=str(e))
            return failed(f"Configuration is invalid. Unable to read connector configuration: {e}")

        oauth = self._oauth_client(cfg)
        try:
            await oauth.fetch_token(cfg.application_id, cfg.application_secret)
        except DestinationError as e:
            self.log.error("access token request failed", error=str(e))
            return failed(f"Generating an access token failed: {e}")

        return succeeded("Successfully generated an access token")

    # ---- write ---------------------------------------------------------------

    async def write(
        self,
        config_path: Path | str,
        catalog_path: Path | str,
        lines: Iterable[str | bytes],
    ) -> WriteResult:
        self.log.debug("write records")
        cfg = DestinationConfig.load(config_path, overrides=self._overrides)
        catalog = load_catalog(catalog_path)
        bind_context(streams=len(catalog.streams))

        token = await self._oauth_client(cfg).fetch_token(cfg.application_id, cfg.application_secret)
        api = self._table_api_factory(cfg, token.access_token)
        ingestion = self._ingestion or WebhookClient(timeout_sec=cfg.http_timeout_sec)
        try:
            reconciler = TableReconciler(api, cfg=cfg, clock=self.clock)
            tables = await reconciler.reconcile(catalog)

            pipeline = BatchingPipeline(tables, ingestion, self.emitter, cfg=cfg, metrics=self.metrics)
            res = await pipeline.run(lines)

            result = WriteResult(
                records=res.records, batches=res.batches, rejected=res.rejected, last_state=res.last_state
            )
            if tables.is_full_reset and res.records == 0:
                await reconciler.teardown(tables)
                result.full_reset = True
        finally:
            await _aclose(api)
            if self._ingestion is None:
                await _aclose(ingestion)

        if result.last_state is not None:
            self.emitter.state(result.last_state)
        self.log.info("write finished", records=result.records, batches=result.batches, full_reset=result.full_reset)
        return result

    def _oauth_client(self, cfg: DestinationConfig) -> OAuthClient:
        return self._oauth or OAuthTokenClient(cfg.oauth_url, timeout_sec=cfg.http_timeout_sec)


__all__ = ["Destination", "WriteResult"]
