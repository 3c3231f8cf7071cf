from .fakes import FakeIngestionClient, FakeOAuthClient, FakeTableApi, make_table
from .util import catalog, emitted, record_line, state_line, stream_entry

__all__ = [
    "FakeIngestionClient",
    "FakeOAuthClient",
    "FakeTableApi",
    "catalog",
    "emitted",
    "make_table",
    "record_line",
    "state_line",
    "stream_entry",
]
