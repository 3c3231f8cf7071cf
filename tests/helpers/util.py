import io
import json
from typing import Any


# ---- protocol lines -----------------------------------------------------------


def record_line(stream: str, data: dict[str, Any], *, namespace: str | None = "public", emitted_at: int = 1_700_000_000_000) -> str:
    rec: dict[str, Any] = {"stream": stream, "data": data, "emitted_at": emitted_at}
    if namespace is not None:
        rec["namespace"] = namespace
    return json.dumps({"type": "RECORD", "record": rec})


def state_line(data: dict[str, Any] | None = None) -> str:
    return json.dumps({"type": "STATE", "state": {"type": "LEGACY", "data": data or {"cursor": 1}}})


def emitted(out: io.StringIO, type_: str | None = None) -> list[dict[str, Any]]:
    """Parsed protocol lines written to `out`, optionally filtered by message type."""
    msgs = [json.loads(line) for line in out.getvalue().splitlines() if line.strip()]
    return [m for m in msgs if type_ is None or m.get("type") == type_]


# ---- catalogs -----------------------------------------------------------------


def stream_entry(
    name: str,
    mode: str,
    *,
    namespace: str | None = "public",
    properties: dict[str, Any] | None = None,
    primary_key: list[list[str]] | None = None,
    cursor_field: list[str] | None = None,
) -> dict[str, Any]:
    stream: dict[str, Any] = {
        "name": name,
        "json_schema": {
            "type": "object",
            "properties": properties
            if properties is not None
            else {
                "id": {"type": "integer"},
                "name": {"type": ["null", "string"]},
                "updated_at": {"type": "string", "format": "date-time", "airbyte_type": "timestamp_with_timezone"},
            },
        },
        "supported_sync_modes": ["full_refresh", "incremental"],
    }
    if namespace is not None:
        stream["namespace"] = namespace
    return {
        "stream": stream,
        "sync_mode": "incremental" if mode != "overwrite" else "full_refresh",
        "destination_sync_mode": mode,
        "primary_key": primary_key or [],
        "cursor_field": cursor_field or [],
    }


def catalog(*entries: dict[str, Any]) -> dict[str, Any]:
    return {"streams": list(entries)}
