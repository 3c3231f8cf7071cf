"""
End-to-end connector flow through Destination.write/check/spec with in-memory
collaborators: reconciliation, batching, checkpoints and the full-reset path.
"""

import pytest

from destkit.api.errors import (
    AuthenticationError,
    ConfigurationError,
    SyncModeMismatchError,
)
from destkit.api.models import RecordRejection
from destkit.core.types import RAW_ID_COLUMN
from destkit.core.utils import record_size
from destkit.protocol.messages import CheckStatus, DestinationSyncMode
from destkit.runtime.destination import Destination
from tests.helpers import (
    FakeIngestionClient,
    FakeOAuthClient,
    FakeTableApi,
    catalog,
    emitted,
    make_table,
    record_line,
    state_line,
    stream_entry,
)

pytestmark = [pytest.mark.integration]


def _destination(emitter, clock, metrics, *, api=None, ingestion=None, oauth=None, overrides=None):
    tokens = []

    def factory(cfg, token):
        tokens.append(token)
        return api

    dest = Destination(
        emitter=emitter,
        oauth=oauth or FakeOAuthClient(),
        ingestion=ingestion or FakeIngestionClient(),
        table_api_factory=factory,
        clock=clock,
        metrics=metrics,
        config_overrides=overrides,
    )
    return dest, tokens


@pytest.mark.asyncio
async def test_full_reset_deletes_all_tables(config_file, write_json, emitter, out, clock, metrics):
    api = FakeTableApi(tables=[make_table("public_users"), make_table("public_orders", unique_id="id")])
    cat = write_json("catalog.json", catalog(stream_entry("users", "overwrite"), stream_entry("orders", "overwrite")))
    dest, tokens = _destination(emitter, clock, metrics, api=api)

    res = await dest.write(config_file, cat, [state_line({"reset": True})])

    assert tokens == ["test-token"]
    assert res.records == 0 and res.full_reset
    assert api.called("delete_storage") == ["public_users", "public_orders"]
    assert api.called("delete_table") == ["public_users", "public_orders"]
    assert api.tables == {}
    # checkpoint forwarded, then re-emitted once after teardown
    assert [m["state"]["data"] for m in emitted(out, "STATE")] == [{"reset": True}, {"reset": True}]


@pytest.mark.asyncio
async def test_overwrite_with_records_is_not_a_full_reset(config_file, write_json, emitter, clock, metrics):
    api = FakeTableApi(tables=[make_table("public_users")])
    ing = FakeIngestionClient()
    cat = write_json("catalog.json", catalog(stream_entry("users", "overwrite")))
    dest, _ = _destination(emitter, clock, metrics, api=api, ingestion=ing)

    res = await dest.write(config_file, cat, [record_line("users", {"id": 1})])

    assert not res.full_reset
    assert api.called("delete_table") == []
    assert api.called("create_deletion_job") == ["DPO-public_users"]
    assert len(ing.posts) == 1


@pytest.mark.asyncio
async def test_mixed_modes_are_not_a_full_reset(config_file, write_json, emitter, clock, metrics):
    api = FakeTableApi(tables=[make_table("public_users"), make_table("public_orders")])
    cat = write_json("catalog.json", catalog(stream_entry("users", "overwrite"), stream_entry("orders", "append")))
    dest, _ = _destination(emitter, clock, metrics, api=api)

    res = await dest.write(config_file, cat, [])

    assert not res.full_reset
    assert api.called("delete_storage") == []


@pytest.mark.asyncio
async def test_dedup_stream_single_batch_on_checkpoint(config_file, write_json, emitter, out, clock, metrics):
    api = FakeTableApi()
    ing = FakeIngestionClient()
    entry = stream_entry("users", "append_dedup", primary_key=[["id"]], cursor_field=["updated_at"])
    cat = write_json("catalog.json", catalog(entry))
    dest, _ = _destination(emitter, clock, metrics, api=api, ingestion=ing)

    lines = [record_line("users", {"id": i % 3, "updated_at": f"2024-01-0{i + 1}T00:00:00Z"}) for i in range(8)]
    res = await dest.write(config_file, cat, [*lines, state_line({"cursor": "2024-01-08"})])

    (spec,) = api.created
    assert spec.table_settings.order_by == ["id"]
    assert spec.table_settings.ver == "updated_at"
    assert spec.unique_id == "id"

    assert len(ing.posts) == 1 and len(ing.posts[0][2]) == 8
    assert res.records == 8 and res.batches == 1
    assert len({e[RAW_ID_COLUMN] for e in ing.posts[0][2]}) == 8
    assert len(emitted(out, "STATE")) == 2


@pytest.mark.asyncio
async def test_byte_limit_forces_two_ordered_posts(config_file, write_json, emitter, out, clock, metrics):
    api = FakeTableApi(tables=[make_table("public_users")])
    states_at_post: list[int] = []

    def note_post(events):
        states_at_post.append(len(emitted(out, "STATE")))
        return []

    ing = FakeIngestionClient(reject=note_post)
    cat = write_json("catalog.json", catalog(stream_entry("users", "append")))
    limit = 400
    dest, _ = _destination(emitter, clock, metrics, api=api, ingestion=ing, overrides={"max_bytes_per_batch": limit})

    lines = [record_line("users", {"id": i, "pad": "z" * 60}) for i in range(4)]
    await dest.write(config_file, cat, [*lines, state_line({"cursor": 4})])

    batches = ing.batches()
    assert len(batches) == 2
    assert [e["id"] for b in batches for e in b] == [0, 1, 2, 3]
    for b in batches:
        assert sum(record_size(e) for e in b) <= limit
    # both posts happen before the checkpoint is forwarded
    assert states_at_post == [0, 0]
    assert metrics.value("destkit_batches_total", table="public_users", reason="bytes") == 1
    assert metrics.value("destkit_batches_total", table="public_users", reason="state") == 1


@pytest.mark.asyncio
async def test_single_rejection_does_not_halt(config_file, write_json, emitter, out, clock, metrics):
    api = FakeTableApi(tables=[make_table("public_users")])

    def reject_one_of_five(events):
        return [RecordRejection(index=2, message="invalid")] if len(events) == 5 else []

    ing = FakeIngestionClient(reject=reject_one_of_five)
    cat = write_json("catalog.json", catalog(stream_entry("users", "append")))
    dest, _ = _destination(emitter, clock, metrics, api=api, ingestion=ing)

    lines = [record_line("users", {"id": i}) for i in range(5)]
    res = await dest.write(
        config_file, cat, [*lines, state_line({"cursor": 5}), record_line("users", {"id": 5}), state_line({"cursor": 6})]
    )

    assert res.records == 6 and res.rejected == 1 and res.batches == 2
    assert [[e["id"] for e in b] for b in ing.batches()] == [[0, 1, 2, 3, 4], [5]]
    # two forwarded checkpoints plus the final re-emission
    assert [m["state"]["data"] for m in emitted(out, "STATE")] == [{"cursor": 5}, {"cursor": 6}, {"cursor": 6}]


@pytest.mark.asyncio
async def test_dedup_without_primary_key_fails_before_create(config_file, write_json, emitter, clock, metrics):
    api = FakeTableApi()
    ing = FakeIngestionClient()
    cat = write_json("catalog.json", catalog(stream_entry("users", "append_dedup", cursor_field=["updated_at"])))
    dest, _ = _destination(emitter, clock, metrics, api=api, ingestion=ing)

    with pytest.raises(ConfigurationError):
        await dest.write(config_file, cat, [record_line("users", {"id": 1})])
    assert api.created == [] and ing.posts == []


@pytest.mark.asyncio
async def test_dedup_on_raw_id_table_fails(config_file, write_json, emitter, out, clock, metrics):
    api = FakeTableApi(tables=[make_table("public_users")])
    ing = FakeIngestionClient()
    entry = stream_entry("users", "append_dedup", primary_key=[["id"]], cursor_field=["updated_at"])
    cat = write_json("catalog.json", catalog(entry))
    dest, _ = _destination(emitter, clock, metrics, api=api, ingestion=ing)

    with pytest.raises(SyncModeMismatchError):
        await dest.write(config_file, cat, [record_line("users", {"id": 1}), state_line()])
    assert ing.posts == []
    assert emitted(out, "STATE") == []


@pytest.mark.asyncio
async def test_oauth_failure_stops_before_any_api_call(config_file, write_json, emitter, clock, metrics):
    api = FakeTableApi()
    cat = write_json("catalog.json", catalog(stream_entry("users", "append")))
    oauth = FakeOAuthClient(fail=AuthenticationError("access token request failed with status 401"))
    dest, tokens = _destination(emitter, clock, metrics, api=api, oauth=oauth)

    with pytest.raises(AuthenticationError):
        await dest.write(config_file, cat, [])
    assert tokens == [] and api.calls == []
    assert oauth.requests == [("APP0001", "s3cret")]


@pytest.mark.asyncio
async def test_invalid_catalog_is_fatal(config_file, write_json, emitter, clock, metrics):
    cat = write_json("catalog.json", {"streams": [{"stream": {"name": "users"}}]})
    dest, _ = _destination(emitter, clock, metrics, api=FakeTableApi())
    with pytest.raises(ConfigurationError, match="configured catalog is invalid"):
        await dest.write(config_file, cat, [])


# ---- check / spec -----------------------------------------------------------------


@pytest.mark.asyncio
async def test_check_statuses(config_file, tmp_path, emitter, clock, metrics):
    dest, _ = _destination(emitter, clock, metrics)
    ok = await dest.check(config_file)
    assert ok.status == CheckStatus.SUCCEEDED
    assert ok.message == "Successfully generated an access token"

    bad = tmp_path / "bad.json"
    bad.write_text('{"application_id": ""}', encoding="utf-8")
    invalid = await dest.check(bad)
    assert invalid.status == CheckStatus.FAILED
    assert invalid.message.startswith("Configuration is invalid")

    denied, _ = _destination(emitter, clock, metrics, oauth=FakeOAuthClient(fail=AuthenticationError("401")))
    failed = await denied.check(config_file)
    assert failed.status == CheckStatus.FAILED
    assert failed.message == "Generating an access token failed: 401"


def test_spec_declares_modes_and_required_fields(emitter, clock, metrics):
    dest, _ = _destination(emitter, clock, metrics)
    spec = dest.spec()
    assert spec.supported_destination_sync_modes == [
        DestinationSyncMode.overwrite,
        DestinationSyncMode.append,
        DestinationSyncMode.append_dedup,
    ]
    conn = spec.connection_specification
    assert conn["required"] == ["application_id", "application_secret"]
    assert conn["properties"]["application_secret"]["airbyte_secret"] is True
    assert spec.supports_incremental
