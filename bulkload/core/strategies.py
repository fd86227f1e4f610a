"""
Strategy selection for one import run.

Priority: native COPY when the store supports it and it is enabled, then
parallel chunk workers for files over the parallel threshold, otherwise
the streaming loader.
"""
import os
from typing import Optional

from ..setup.config.models import ProcessorConfig
from ..setup.logging import logger
from .constants import (
    BYTES_PER_MB,
    LARGE_FILE_MAX_BATCH_SIZE,
    LARGE_FILE_THRESHOLD_MB,
    PARALLEL_THRESHOLD_MB,
)
from .reporting import ProgressReporter
from .schemas import DestinationSchema, Metrics, StoreCapabilities, StrategyTag
from .services.loading import BulkCopyLoader, ParallelChunkLoader, StreamingBatchLoader


def select_strategy(file_size_mb: float, capabilities: StoreCapabilities, config: ProcessorConfig) -> StrategyTag:
    """Pick exactly one strategy; pure."""
    if capabilities.supports_bulk_copy and config.use_pg_copy_stream:
        return StrategyTag.BULK_COPY
    if config.use_workers and file_size_mb > PARALLEL_THRESHOLD_MB:
        return StrategyTag.PARALLEL
    return StrategyTag.STREAMING


def clamp_batch_size(file_size_mb: float, config: ProcessorConfig) -> ProcessorConfig:
    """Files over the large-file threshold get batches of at most 250 rows."""
    if file_size_mb > LARGE_FILE_THRESHOLD_MB and config.batch_size > LARGE_FILE_MAX_BATCH_SIZE:
        return config.model_copy(update={"batch_size": LARGE_FILE_MAX_BATCH_SIZE})
    return config


def get_file_size_mb(file_path: str) -> float:
    return os.path.getsize(file_path) / BYTES_PER_MB


class StrategyRunner:
    """Maps a StrategyTag to its loader; loaders are built lazily per run."""

    def __init__(self, store, reporter: ProgressReporter):
        self.store = store
        self.reporter = reporter

    def loader_for(self, strategy: StrategyTag):
        if strategy is StrategyTag.BULK_COPY:
            return BulkCopyLoader(self.store, self.reporter)
        if strategy is StrategyTag.PARALLEL:
            return ParallelChunkLoader(self.store, self.reporter)
        return StreamingBatchLoader(self.store, self.reporter)


async def process_gigabyte_file(
    config: ProcessorConfig,
    file_path: str,
    destination: DestinationSchema,
    store,
    reporter: Optional[ProgressReporter] = None,
    runner: Optional[StrategyRunner] = None,
) -> Metrics:
    """
    Select a strategy for ``file_path`` and run exactly one loader.

    Returns:
        The Metrics of the finished run.
    """
    reporter = reporter or ProgressReporter(config.log_level)
    runner = runner or StrategyRunner(store, reporter)

    metrics = Metrics()
    metrics.start()

    file_size_mb = get_file_size_mb(file_path)
    reporter.info(f"Processing {file_path} ({file_size_mb:.2f} MB) into '{destination.table_name}'")

    effective = clamp_batch_size(file_size_mb, config)
    if effective.batch_size != config.batch_size:
        reporter.info(f"Large file: batch size reduced to {effective.batch_size}")

    strategy = select_strategy(file_size_mb, store.capabilities, effective)
    metrics.strategy = strategy
    logger.info(f"[StrategySelector] Using {strategy.value} strategy for {file_path}")

    return await runner.loader_for(strategy).load(effective, file_path, destination, metrics)

