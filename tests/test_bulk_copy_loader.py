"""
Tests for the native bulk-copy loader.
"""
import asyncio

import pytest

from bulkload.core.constants import DESTINATIONS
from bulkload.core.exceptions import ConnectionFailure, InsertionError
from bulkload.core.schemas import Metrics, StrategyTag
from bulkload.core.services.loading import BulkCopyLoader
from bulkload.setup.config.models import DatabaseConfig

ENGINEER = DESTINATIONS["engineer"]


class TestBulkCopyLoader:
    """Test suite for BulkCopyLoader."""

    def test_success_counts_every_data_line(self, make_store, make_config, write_csv):
        store = make_store(supports_bulk_copy=True)
        path = write_csv(["id,name", "1,Alice", "2,Bob", "3,Carol"])

        metrics = asyncio.run(BulkCopyLoader(store).load(make_config(), path, ENGINEER))

        assert metrics.strategy is StrategyTag.BULK_COPY
        assert metrics.total_records == 3
        assert metrics.successful_records == 3
        assert metrics.failed_records == 0
        assert store.copy_calls == [("engineers", ["id", "name"], path, None)]

    def test_header_columns_passed_verbatim(self, make_store, make_config, write_csv):
        store = make_store(supports_bulk_copy=True)
        path = write_csv(["name,id", "Alice,1"])

        asyncio.run(BulkCopyLoader(store).load(make_config(), path, ENGINEER))

        assert store.copy_calls[0][1] == ["name", "id"]

    def test_alternate_connection_config(self, make_store, make_config, write_csv):
        store = make_store(supports_bulk_copy=True)
        path = write_csv(["id,name", "1,Alice"])
        pg_config = DatabaseConfig(host="replica", database_name="warehouse")

        asyncio.run(BulkCopyLoader(store).load(make_config(pg_config=pg_config), path, ENGINEER))

        assert store.copy_calls[0][3] == pg_config

    def test_rejection_fails_every_record(self, make_store, make_config, write_csv):
        store = make_store(supports_bulk_copy=True, copy_error=InsertionError("bad date in line 3"))
        path = write_csv(["id,name", "1,Alice", "2,Bob"])
        metrics = Metrics()

        with pytest.raises(InsertionError):
            asyncio.run(BulkCopyLoader(store).load(make_config(), path, ENGINEER, metrics))

        assert metrics.successful_records == 0
        assert metrics.failed_records == 2
        assert metrics.end_time is not None

    def test_os_error_becomes_connection_failure(self, make_store, make_config, write_csv):
        store = make_store(supports_bulk_copy=True, copy_error=ConnectionResetError("reset by peer"))
        path = write_csv(["id,name", "1,Alice"])
        metrics = Metrics()

        with pytest.raises(ConnectionFailure):
            asyncio.run(BulkCopyLoader(store).load(make_config(), path, ENGINEER, metrics))

        assert metrics.failed_records == 1
