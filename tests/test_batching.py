"""
Tests for the bounded batch admission policy.
"""
import asyncio
import unittest
from unittest.mock import Mock

from bulkload.core.constants import DESTINATIONS
from bulkload.core.exceptions import ConnectionFailure, InsertionError
from bulkload.core.schemas import Metrics
from bulkload.core.services.loading import BatchSubmitter


class SlowScope:
    """Records how many inserts overlap; fails batches whose first id is listed."""

    def __init__(self, delay=0.01, failing_ids=()):
        self.delay = delay
        self.failing_ids = set(failing_ids)
        self.active = 0
        self.peak = 0
        self.order = []

    async def insert_batch(self, schema, records):
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            self.order.append(records[0]["id"])
            await asyncio.sleep(self.delay)
            if records[0]["id"] in self.failing_ids:
                raise InsertionError("duplicate key")
            if records[0]["id"] == -1:
                raise ConnectionFailure("connection reset")
            return len(records)
        finally:
            self.active -= 1


def batches(count, size=5):
    return [[{"id": b * size + i, "name": "n"} for i in range(size)] for b in range(count)]


class TestBatchSubmitter(unittest.TestCase):
    """Test cases for BatchSubmitter."""

    def _run(self, scope, to_submit, max_in_flight):
        metrics = Metrics()

        async def go():
            submitter = BatchSubmitter(scope, DESTINATIONS["engineer"], metrics, Mock(), max_in_flight)
            for batch in to_submit:
                await submitter.submit(batch)
                self.assertLessEqual(submitter.in_flight, max_in_flight)
            await submitter.drain()
            return submitter

        return asyncio.run(go()), metrics

    def test_concurrency_cap(self):
        scope = SlowScope()
        submitter, metrics = self._run(scope, batches(12), max_in_flight=3)

        self.assertLessEqual(scope.peak, 3)
        self.assertEqual(submitter.peak_in_flight, scope.peak)
        self.assertEqual(metrics.successful_records, 60)
        self.assertEqual(metrics.current_batch, 12)
        self.assertEqual(submitter.pending, 0)

    def test_dispatch_order_follows_submission(self):
        scope = SlowScope(delay=0)
        self._run(scope, batches(6), max_in_flight=1)

        self.assertEqual(scope.order, [0, 5, 10, 15, 20, 25])

    def test_failed_batches_are_counted_and_run_continues(self):
        scope = SlowScope(failing_ids={5, 15})
        _, metrics = self._run(scope, batches(4), max_in_flight=2)

        self.assertEqual(metrics.failed_records, 10)
        self.assertEqual(metrics.successful_records, 10)
        self.assertEqual(metrics.current_batch, 4)

    def test_connection_loss_stops_admission(self):
        scope = SlowScope(delay=0)
        to_submit = batches(6)
        to_submit[1][0]["id"] = -1
        metrics = Metrics()

        async def go():
            submitter = BatchSubmitter(scope, DESTINATIONS["engineer"], metrics, Mock(), 1)
            with self.assertRaises(ConnectionFailure):
                for batch in to_submit:
                    await submitter.submit(batch)
            with self.assertRaises(ConnectionFailure):
                await submitter.drain()
            return submitter

        submitter = asyncio.run(go())

        self.assertEqual(scope.order, [0, -1])
        self.assertEqual(metrics.current_batch, 2)
        self.assertEqual(metrics.successful_records, 5)
        self.assertEqual(metrics.failed_records, 5)
        self.assertIsInstance(submitter.connection_error, ConnectionFailure)
        self.assertEqual(submitter.pending, 0)

    def test_connection_loss_surfaces_on_drain(self):
        scope = SlowScope(delay=0.01)
        to_submit = batches(2)
        to_submit[1][0]["id"] = -1
        metrics = Metrics()

        async def go():
            submitter = BatchSubmitter(scope, DESTINATIONS["engineer"], metrics, Mock(), 2)
            for batch in to_submit:
                await submitter.submit(batch)
            await submitter.drain()

        with self.assertRaises(ConnectionFailure):
            asyncio.run(go())
        self.assertEqual(metrics.successful_records, 5)

    def test_empty_batch_is_not_dispatched(self):
        scope = SlowScope()
        _, metrics = self._run(scope, [[]], max_in_flight=1)

        self.assertEqual(metrics.current_batch, 0)
        self.assertEqual(scope.order, [])

    def test_rejects_zero_cap(self):
        with self.assertRaises(ValueError):
            BatchSubmitter(SlowScope(), DESTINATIONS["engineer"], Metrics(), Mock(), 0)
