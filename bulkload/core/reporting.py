import logging
from typing import Optional

from .schemas import Metrics
from ..setup.logging import logger as package_logger

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class ProgressReporter:
    """
    Run-scoped progress and summary logging.

    Messages below the run's ``log_level`` are dropped here, independently
    of how the process-wide handlers are configured.
    """

    def __init__(self, log_level: str = "info", component: str = "Ingest", logger: Optional[logging.Logger] = None):
        self.threshold = LEVELS.get(log_level, logging.INFO)
        self.component = component
        self.logger = logger or package_logger

    def enabled(self, level: str) -> bool:
        return LEVELS[level] >= self.threshold

    def log(self, level: str, message: str) -> None:
        if self.enabled(level):
            self.logger.log(LEVELS[level], f"[{self.component}] {message}")

    def debug(self, message: str) -> None:
        self.log("debug", message)

    def info(self, message: str) -> None:
        self.log("info", message)

    def warn(self, message: str) -> None:
        self.log("warn", message)

    def error(self, message: str) -> None:
        self.log("error", message)

    def progress(self, metrics: Metrics, bytes_read: int, file_size: int) -> None:
        """Log percent done (by bytes), throughput and an ETA."""
        if not self.enabled("info"):
            return

        percent = (bytes_read / file_size * 100) if file_size > 0 else 100.0
        rate = metrics.records_per_second
        elapsed = metrics.elapsed_seconds

        eta = "unknown"
        if 0 < bytes_read < file_size and elapsed > 0:
            remaining = elapsed * (file_size - bytes_read) / bytes_read
            eta = f"{remaining:.1f}s"

        self.info(
            f"Progress: {percent:.1f}% | batch {metrics.current_batch} | "
            f"{metrics.processed_records} records | {rate:.0f} records/sec | ETA {eta}"
        )

    def final(self, metrics: Metrics) -> None:
        """Summary of a finished (or aborted) run."""
        strategy = metrics.strategy.value if metrics.strategy else "n/a"
        self.info(
            f"Import finished ({strategy}): total={metrics.total_records} "
            f"successful={metrics.successful_records} failed={metrics.failed_records} "
            f"skipped={metrics.skipped_records} "
            f"throughput={metrics.records_per_second:.0f} records/sec "
            f"elapsed={metrics.elapsed_seconds:.2f}s"
        )
