# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Webhook ingestion client.

A batch is one POST of a JSON array. The endpoint answers 2xx when every
event was stored, or 4xx with ``{"errors": [{"index": i, "message": ...}]}``
naming the events it refused. Anything else means the batch was not
accepted at all and raises DeliveryError.
"""

from collections.abc import Sequence
from typing import Any

import httpx
from pydantic import ValidationError

from ..api.errors import DeliveryError
from ..api.models import BasicAuth, RecordRejection
from ..core.utils import dumps


class WebhookClient:
    def __init__(self, *, timeout_sec: float = 30.0, http: httpx.AsyncClient | None = None) -> None:
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=timeout_sec)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> WebhookClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def post_events(
        self, url: str, auth: BasicAuth | None, events: Sequence[dict[str, Any]]
    ) -> list[RecordRejection]:
        try:
            resp = await self._http.post(
                url,
                content=dumps(list(events)),
                headers={"Content-Type": "application/json"},
                auth=(auth.username, auth.password) if auth else None,
            )
        except httpx.HTTPError as e:
            raise DeliveryError(f"posting {len(events)} events to {url} failed: {e}") from e

        if 200 <= resp.status_code < 300:
            return []
        if 400 <= resp.status_code < 500:
            rejections = _parse_rejections(resp)
            if rejections is not None:
                return rejections
        raise DeliveryError(f"posting {len(events)} events to {url} failed with status {resp.status_code}")


def _parse_rejections(resp: httpx.Response) -> list[RecordRejection] | None:
    """Per-event errors from a 4xx body, or None when the body is not in that shape."""
    try:
        body = resp.json()
    except ValueError:
        return None
    errors = body.get("errors") if isinstance(body, dict) else None
    if not isinstance(errors, list) or not errors:
        return None
    try:
        return [RecordRejection.model_validate(err) for err in errors]
    except ValidationError:
        return None


__all__ = ["WebhookClient"]
