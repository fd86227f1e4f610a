"""
Streaming batch loader.

Reads the source once, line by line, keeping at most ``batch_size`` rows
being accumulated plus ``max_concurrent_batches`` batches in flight.
"""
import os
from typing import List, Optional

from ....setup.config.models import ProcessorConfig
from ...constants import PROGRESS_EVERY_N_BATCHES
from ...exceptions import ConnectionFailure, MalformedRowError, ValidationError
from ...parsing import BOM, parse_line, strip_line_ending
from ...reporting import ProgressReporter
from ...schemas import DestinationSchema, Metrics, StrategyTag, TransformedRecord
from ...transforms import build_row, transform_row
from .batching import BatchSubmitter


class StreamingBatchLoader:
    """Single-pass loader for files the parallel and COPY paths do not take."""

    def __init__(self, store, reporter: Optional[ProgressReporter] = None):
        self.store = store
        self.reporter = reporter or ProgressReporter(component="StreamingLoader")

    async def load(
        self,
        config: ProcessorConfig,
        file_path: str,
        schema: DestinationSchema,
        metrics: Optional[Metrics] = None,
    ) -> Metrics:
        metrics = metrics or Metrics()
        metrics.strategy = StrategyTag.STREAMING
        if metrics.start_time is None:
            metrics.start()

        file_size = os.path.getsize(file_path)
        self.reporter.info(
            f"Streaming {file_path} into '{schema.table_name}' "
            f"(batch_size={config.batch_size}, max_concurrent_batches={config.max_concurrent_batches}, "
            f"transaction={config.use_transaction})"
        )

        async with self.store.write_scope(config.use_transaction) as scope:
            submitter = BatchSubmitter(
                scope, schema, metrics, self.reporter, config.max_concurrent_batches
            )
            try:
                await self._stream(config, file_path, file_size, schema, metrics, submitter)
                await submitter.drain()
            except ConnectionFailure as e:
                await submitter.settle()
                metrics.finish()
                self.reporter.error(f"Store connection lost while loading {file_path}: {e}")
                self.reporter.final(metrics)
                raise
            except (OSError, UnicodeDecodeError) as e:
                # Settle what is already in flight before the scope rolls back.
                await submitter.settle()
                metrics.finish()
                self.reporter.error(f"Reading {file_path} failed: {e}")
                self.reporter.final(metrics)
                raise ConnectionFailure(f"Source stream failed for {file_path}: {e}") from e

        if config.use_transaction:
            self.reporter.info("Transaction committed successfully")

        metrics.total_records = metrics.successful_records + metrics.failed_records
        metrics.total_batches = metrics.current_batch
        metrics.finish()
        self.reporter.info(f"Completed processing {file_path} for '{schema.name}'")
        self.reporter.final(metrics)
        return metrics

    async def _stream(
        self,
        config: ProcessorConfig,
        file_path: str,
        file_size: int,
        schema: DestinationSchema,
        metrics: Metrics,
        submitter: BatchSubmitter,
    ) -> None:
        batch: List[TransformedRecord] = []
        header_row: List[str] = []
        bytes_read = 0
        line_number = 0

        with open(file_path, "rb") as handle:
            for raw in handle:
                bytes_read += len(raw)
                line = strip_line_ending(raw.decode("utf-8"))

                if line_number == 0:
                    header_row = [column.strip() for column in parse_line(line.lstrip(BOM))]
                    line_number += 1
                    continue

                record = self._process_line(line, line_number, header_row, schema, metrics)
                line_number += 1
                if record is None:
                    continue

                batch.append(record)
                if len(batch) >= config.batch_size:
                    batch_number = await submitter.submit(batch)
                    batch = []
                    if batch_number % PROGRESS_EVERY_N_BATCHES == 0:
                        self.reporter.progress(metrics, bytes_read, file_size)

        if batch:
            await submitter.submit(batch)

    def _process_line(
        self,
        line: str,
        line_number: int,
        header_row: List[str],
        schema: DestinationSchema,
        metrics: Metrics,
    ) -> Optional[TransformedRecord]:
        try:
            row = build_row(header_row, parse_line(line), line_number)
            return transform_row(row, schema)
        except MalformedRowError as e:
            metrics.skipped_records += 1
            self.reporter.warn(f"Skipping malformed line {line_number}: {e}")
        except ValidationError as e:
            metrics.failed_records += 1
            self.reporter.warn(f"Invalid row at line {line_number}: {e}")
        return None
