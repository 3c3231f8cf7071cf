# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
destkit.clients.graphql
=======================

`TableApi` over the management GraphQL endpoint.

- One POST per operation, bearer-token authenticated.
- Fetch operations map a `NOT_FOUND` error code to `None`.
- Every other GraphQL error, non-2xx status or transport failure raises
  `UpstreamError` naming the operation and the resource.
"""

from collections.abc import Sequence
from typing import Any

import httpx

from ..api.errors import UpstreamError
from ..api.models import (
    BasicAuth,
    CreateTableInput,
    DeletionJob,
    FilterInput,
    StorageResource,
    Table,
    TableSettings,
)
from ..core.logging import get_logger

# ---- Documents ----------------------------------------------------------------

_TABLE_FIELDS = """
  id
  uniqueName
  status
  connectionSettings {
    ... on WebhookConnectionSettings {
      webhookUrl
      uniqueId
      timestamp
      basicAuth { username password }
    }
  }
  tableSettings {
    primaryKey
    partitionBy
    orderBy
    engine { ... on ReplacingMergeTreeTableEngine { type ver } }
  }
"""

CREATE_TABLE = f"""
mutation CreateWebhookDataSource($input: CreateWebhookDataSourceInput!) {{
  createWebhookDataSource(input: $input) {{ dataSource {{ {_TABLE_FIELDS} }} }}
}}
"""

FETCH_TABLE = f"""
query DataSourceByName($uniqueName: String!) {{
  dataSource(uniqueName: $uniqueName) {{ {_TABLE_FIELDS} }}
}}
"""

FETCH_STORAGE = """
query DataPoolByName($uniqueName: String!) {
  dataPool(uniqueName: $uniqueName) { id uniqueName status }
}
"""

CREATE_DELETION_JOB = """
mutation CreateDeletionJob($input: CreateDeletionJobInput!) {
  createDeletionJob(input: $input) { job { id status } }
}
"""

FETCH_DELETION_JOB = """
query DeletionJob($id: ID!) {
  deletionJob(id: $id) { id status }
}
"""

DELETE_STORAGE = """
mutation DeleteDataPoolByName($uniqueName: String!) {
  deleteDataPoolByName(uniqueName: $uniqueName)
}
"""

DELETE_TABLE = """
mutation DeleteDataSourceByName($uniqueName: String!) {
  deleteDataSourceByName(uniqueName: $uniqueName)
}
"""


class _NotFound(Exception):
    pass


# ---- Converters -----------------------------------------------------------------


def _create_table_variables(spec: CreateTableInput) -> dict[str, Any]:
    settings: dict[str, Any] = {
        "columns": [
            {"columnName": c.name, "type": c.type.value, "nullable": c.nullable, "jsonProperty": c.json_property}
            for c in spec.columns
        ],
        "basicAuth": {"username": spec.basic_auth.username, "password": spec.basic_auth.password},
        "uniqueId": spec.unique_id,
    }
    if spec.timestamp:
        settings["timestamp"] = spec.timestamp
    if spec.table_settings is not None:
        ts = spec.table_settings
        settings["tableSettings"] = {
            "primaryKey": list(ts.primary_key),
            "partitionBy": list(ts.partition_by),
            "orderBy": list(ts.order_by),
            "engine": {ts.engine: {"type": ts.engine, "ver": ts.ver}},
        }
    return {"input": {"uniqueName": spec.unique_name, "connectionSettings": settings}}


def _table_from_node(node: dict[str, Any]) -> Table:
    conn = node.get("connectionSettings") or {}
    auth = conn.get("basicAuth")
    settings = None
    ts = node.get("tableSettings")
    if ts:
        engine = ts.get("engine") or {}
        settings = TableSettings(
            primary_key=ts.get("primaryKey") or [],
            partition_by=ts.get("partitionBy") or [],
            order_by=ts.get("orderBy") or [],
            engine=engine.get("type") or "REPLACING_MERGE_TREE",
            ver=engine.get("ver"),
        )
    return Table(
        id=node["id"],
        unique_name=node["uniqueName"],
        status=node["status"],
        webhook_url=conn.get("webhookUrl") or "",
        basic_auth=BasicAuth(**auth) if auth else None,
        unique_id=conn.get("uniqueId"),
        timestamp=conn.get("timestamp"),
        table_settings=settings,
    )


def _storage_from_node(node: dict[str, Any]) -> StorageResource:
    return StorageResource(id=node["id"], unique_name=node["uniqueName"], status=node["status"])


def _job_from_node(node: dict[str, Any], storage_id: str | None = None) -> DeletionJob:
    return DeletionJob(id=node["id"], status=node["status"], storage_id=storage_id)


def _mutation_node(what: str, data: dict[str, Any], field: str, key: str) -> dict[str, Any]:
    """`data[field][key]` of a mutation; a null payload is an UpstreamError."""
    payload = data.get(field)
    node = payload.get(key) if isinstance(payload, dict) else None
    if not isinstance(node, dict):
        raise UpstreamError(f"{what} failed: response carries no {field}.{key}")
    return node


# ---- Client -----------------------------------------------------------------------


class GraphQLTableApi:
    """Bearer-authenticated GraphQL implementation of `TableApi`."""

    def __init__(
        self,
        url: str,
        access_token: str,
        *,
        timeout_sec: float = 30.0,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=timeout_sec)
        self._headers = {"Authorization": f"Bearer {access_token}"}
        self.log = get_logger("clients.graphql")

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> GraphQLTableApi:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def _execute(self, what: str, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """
        POST one document and return its `data`.
        Raises _NotFound when every reported error carries the NOT_FOUND code.
        """
        try:
            resp = await self._http.post(self.url, json={"query": query, "variables": variables}, headers=self._headers)
        except httpx.HTTPError as e:
            raise UpstreamError(f"{what} failed: {e}") from e
        try:
            body = resp.json()
        except ValueError as e:
            raise UpstreamError(f"{what} failed with status {resp.status_code}: unparseable response") from e

        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            codes = {((err.get("extensions") or {}).get("code")) for err in errors}
            if codes == {"NOT_FOUND"}:
                raise _NotFound(what)
            messages = "; ".join(str(err.get("message")) for err in errors)
            raise UpstreamError(f"{what} failed: {messages}")
        if resp.status_code >= 400:
            raise UpstreamError(f"{what} failed with status {resp.status_code}")
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise UpstreamError(f"{what} failed: response carries no data")
        return data

    async def _fetch(self, what: str, query: str, variables: dict[str, Any], field: str) -> dict[str, Any] | None:
        try:
            data = await self._execute(what, query, variables)
        except _NotFound:
            return None
        return data.get(field)

    # ---- TableApi -----------------------------------------------------------

    async def create_table(self, spec: CreateTableInput) -> Table:
        what = f"create table {spec.unique_name!r}"
        try:
            data = await self._execute(what, CREATE_TABLE, _create_table_variables(spec))
        except _NotFound as e:
            raise UpstreamError(f"{what} failed: not found") from e
        table = _table_from_node(_mutation_node(what, data, "createWebhookDataSource", "dataSource"))
        self.log.debug("table created", table=table.unique_name, table_id=table.id, status=table.status)
        return table

    async def fetch_table(self, unique_name: str) -> Table | None:
        node = await self._fetch(f"fetch table {unique_name!r}", FETCH_TABLE, {"uniqueName": unique_name}, "dataSource")
        return _table_from_node(node) if node else None

    async def fetch_storage(self, unique_name: str) -> StorageResource | None:
        node = await self._fetch(f"fetch storage {unique_name!r}", FETCH_STORAGE, {"uniqueName": unique_name}, "dataPool")
        return _storage_from_node(node) if node else None

    async def create_deletion_job(self, storage_id: str, filters: Sequence[FilterInput]) -> DeletionJob:
        what = f"create deletion job for storage {storage_id!r}"
        variables = {"input": {"dataPool": storage_id, "filters": [f.model_dump() for f in filters]}}
        try:
            data = await self._execute(what, CREATE_DELETION_JOB, variables)
        except _NotFound as e:
            raise UpstreamError(f"{what} failed: not found") from e
        return _job_from_node(_mutation_node(what, data, "createDeletionJob", "job"), storage_id)

    async def fetch_deletion_job(self, job_id: str) -> DeletionJob | None:
        node = await self._fetch(f"fetch deletion job {job_id!r}", FETCH_DELETION_JOB, {"id": job_id}, "deletionJob")
        return _job_from_node(node) if node else None

    async def delete_storage(self, unique_name: str) -> str:
        return await self._delete(f"delete storage {unique_name!r}", DELETE_STORAGE, unique_name, "deleteDataPoolByName")

    async def delete_table(self, unique_name: str) -> str:
        return await self._delete(f"delete table {unique_name!r}", DELETE_TABLE, unique_name, "deleteDataSourceByName")

    async def _delete(self, what: str, query: str, unique_name: str, field: str) -> str:
        try:
            data = await self._execute(what, query, {"uniqueName": unique_name})
        except _NotFound as e:
            raise UpstreamError(f"{what} failed: not found") from e
        return str(data.get(field) or "")


__all__ = ["GraphQLTableApi"]
