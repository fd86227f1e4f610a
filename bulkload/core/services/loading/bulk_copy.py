"""
Native bulk-copy loader.

Hands the raw file to the store's COPY command on a dedicated connection.
There is no per-row validation: the store accepts the whole file or none of
it.
"""
from typing import Optional

from ....setup.config.models import ProcessorConfig
from ...exceptions import ConnectionFailure, IngestionError, InsertionError
from ...parsing import count_file_lines, read_header
from ...reporting import ProgressReporter
from ...schemas import DestinationSchema, Metrics, StrategyTag


class BulkCopyLoader:
    def __init__(self, store, reporter: Optional[ProgressReporter] = None):
        self.store = store
        self.reporter = reporter or ProgressReporter(component="BulkCopyLoader")

    async def load(
        self,
        config: ProcessorConfig,
        file_path: str,
        schema: DestinationSchema,
        metrics: Optional[Metrics] = None,
    ) -> Metrics:
        metrics = metrics or Metrics()
        metrics.strategy = StrategyTag.BULK_COPY
        if metrics.start_time is None:
            metrics.start()

        columns = read_header(file_path)
        metrics.total_records = max(count_file_lines(file_path) - 1, 0)
        metrics.total_batches = 1
        self.reporter.info(
            f"Copying {metrics.total_records} records from {file_path} into "
            f"'{schema.table_name}' ({', '.join(columns)})"
        )

        try:
            status = await self.store.copy_file(schema, columns, file_path, config.pg_config)
        except IngestionError as e:
            self._fail(metrics, e)
            raise
        except OSError as e:
            self._fail(metrics, e)
            raise ConnectionFailure(f"COPY from {file_path} failed: {e}") from e
        except Exception as e:
            self._fail(metrics, e)
            raise InsertionError(f"COPY into '{schema.table_name}' failed: {e}") from e

        metrics.current_batch = 1
        metrics.successful_records = metrics.total_records
        metrics.failed_records = 0
        metrics.finish()
        self.reporter.info(f"COPY completed: {status}")
        self.reporter.final(metrics)
        return metrics

    def _fail(self, metrics: Metrics, error: Exception) -> None:
        metrics.successful_records = 0
        metrics.failed_records = metrics.total_records
        metrics.finish()
        self.reporter.error(f"COPY failed, nothing was written: {error}")
        self.reporter.final(metrics)
