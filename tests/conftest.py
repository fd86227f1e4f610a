import asyncio
import os
from contextlib import asynccontextmanager

import pytest

os.environ["ENVIRONMENT"] = "testing"

from bulkload.core.exceptions import ConnectionFailure, InsertionError
from bulkload.core.schemas import StoreCapabilities
from bulkload.setup.config.models import ProcessorConfig


class FakeWriteScope:
    def __init__(self, store, use_transaction):
        self.store = store
        self.use_transaction = use_transaction
        self.staged = []

    async def insert_batch(self, schema, records):
        store = self.store
        store.insert_calls += 1
        call_number = store.insert_calls
        store.in_flight += 1
        store.peak_in_flight = max(store.peak_in_flight, store.in_flight)
        try:
            if store.insert_delay:
                await asyncio.sleep(store.insert_delay)
            if store.connection_lost_at and call_number >= store.connection_lost_at:
                raise ConnectionFailure(f"connection lost at batch {call_number}")
            if call_number in store.fail_calls:
                raise InsertionError(f"batch {call_number} rejected")
            target = self.staged if self.use_transaction else store.rows
            target.extend(records)
            return len(records)
        finally:
            store.in_flight -= 1


class FakeStore:
    """In-memory stand-in for DatabaseService."""

    def __init__(
        self,
        supports_bulk_copy=False,
        fail_calls=(),
        insert_delay=0.0,
        copy_error=None,
        connection_lost_at=None,
    ):
        self.supports_bulk_copy = supports_bulk_copy
        self.fail_calls = set(fail_calls)
        self.insert_delay = insert_delay
        self.copy_error = copy_error
        self.connection_lost_at = connection_lost_at
        self.rows = []
        self.insert_calls = 0
        self.in_flight = 0
        self.peak_in_flight = 0
        self.commits = 0
        self.rollbacks = 0
        self.copy_calls = []
        self.synced = []
        self.closed = False

    @property
    def capabilities(self):
        return StoreCapabilities(supports_bulk_copy=self.supports_bulk_copy)

    @asynccontextmanager
    async def write_scope(self, use_transaction=True):
        scope = FakeWriteScope(self, use_transaction)
        try:
            yield scope
        except BaseException:
            self.rollbacks += 1
            raise
        if use_transaction:
            self.rows.extend(scope.staged)
            self.commits += 1

    async def copy_file(self, schema, columns, file_path, pg_config=None):
        self.copy_calls.append((schema.table_name, list(columns), str(file_path), pg_config))
        if self.copy_error is not None:
            raise self.copy_error
        return "COPY"

    def sync_schema(self, schema):
        self.synced.append(schema.name)

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def write_csv(tmp_path):
    """Write lines (header first) to a CSV file and return its path."""
    def _write(lines, name="data.csv", trailing_newline=True):
        path = tmp_path / name
        content = "\n".join(lines)
        if trailing_newline:
            content += "\n"
        path.write_text(content, encoding="utf-8")
        return str(path)
    return _write


@pytest.fixture
def make_config():
    def _make(**overrides):
        values = dict(
            batch_size=10,
            max_concurrent_batches=2,
            use_transaction=True,
            use_workers=False,
            use_pg_copy_stream=False,
            worker_count=2,
            log_level="error",
        )
        values.update(overrides)
        return ProcessorConfig(**values)
    return _make


@pytest.fixture
def make_store():
    return FakeStore
