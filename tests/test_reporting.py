"""
Tests for the progress reporter.
"""
import logging

import pytest

from bulkload.core.reporting import ProgressReporter
from bulkload.core.schemas import Metrics, StrategyTag


@pytest.fixture
def captured(caplog):
    caplog.set_level(logging.DEBUG, logger="bulkload")
    return caplog


class TestProgressReporter:
    def test_messages_below_threshold_are_dropped(self, captured):
        reporter = ProgressReporter("warn", component="Test")

        reporter.info("hidden")
        reporter.debug("hidden too")
        reporter.warn("shown")
        reporter.error("shown as well")

        messages = [record.getMessage() for record in captured.records]
        assert messages == ["[Test] shown", "[Test] shown as well"]

    def test_progress_has_percent_and_eta(self, captured):
        reporter = ProgressReporter("info", component="Test")
        metrics = Metrics(start_time=100.0, end_time=110.0, successful_records=400, current_batch=10)

        reporter.progress(metrics, bytes_read=250, file_size=1000)

        message = captured.records[-1].getMessage()
        assert "25.0%" in message
        assert "40 records/sec" in message
        assert "ETA 30.0s" in message

    def test_progress_suppressed_at_error_level(self, captured):
        reporter = ProgressReporter("error")

        reporter.progress(Metrics(start_time=0.0, end_time=1.0), 1, 2)

        assert captured.records == []

    def test_final_report(self, captured):
        reporter = ProgressReporter("info", component="Test")
        metrics = Metrics(
            start_time=0.0,
            end_time=2.0,
            total_records=10,
            successful_records=8,
            failed_records=2,
            strategy=StrategyTag.STREAMING,
        )

        reporter.final(metrics)

        message = captured.records[-1].getMessage()
        assert "streaming" in message
        assert "total=10" in message
        assert "successful=8" in message
        assert "failed=2" in message
        assert "throughput=5 records/sec" in message
        assert "elapsed=2.00s" in message


class TestMetrics:
    def test_throughput_and_dict(self):
        metrics = Metrics(start_time=10.0, end_time=14.0, successful_records=6, failed_records=2, total_records=8)

        assert metrics.elapsed_seconds == 4.0
        assert metrics.records_per_second == 2.0
        assert metrics.as_dict()["total_records"] == 8

    def test_not_started(self):
        assert Metrics().elapsed_seconds == 0.0
        assert Metrics().records_per_second == 0.0
