import asyncio
from typing import List, Optional, Set

from ....setup.logging import logger
from ...exceptions import ConnectionFailure, InsertionError
from ...reporting import ProgressReporter
from ...schemas import DestinationSchema, Metrics, TransformedRecord


class BatchSubmitter:
    """
    Bounded admission of insert batches.

    At most ``max_in_flight`` batches run at once; ``submit`` waits for a
    free slot before dispatching, which is the only backpressure between the
    file reader and the store. Batches are dispatched in submission order
    and may complete in any order. A batch the store rejects is counted in
    ``failed_records`` and does not stop the run. A lost connection does:
    no further batch is admitted and ``submit``/``drain`` raise it.
    """

    def __init__(
        self,
        scope,
        schema: DestinationSchema,
        metrics: Metrics,
        reporter: ProgressReporter,
        max_in_flight: int,
    ):
        if max_in_flight < 1:
            raise ValueError("max_in_flight must be at least 1")
        self.scope = scope
        self.schema = schema
        self.metrics = metrics
        self.reporter = reporter
        self.max_in_flight = max_in_flight
        self._slots = asyncio.Semaphore(max_in_flight)
        self._pending: Set[asyncio.Task] = set()
        self.in_flight = 0
        self.peak_in_flight = 0
        self.connection_error: Optional[ConnectionFailure] = None

    def _raise_if_disconnected(self) -> None:
        if self.connection_error is not None:
            raise self.connection_error

    async def submit(self, records: List[TransformedRecord]) -> int:
        """Dispatch one batch once a slot is free; returns its batch number."""
        self._raise_if_disconnected()
        if not records:
            return self.metrics.current_batch

        await self._slots.acquire()
        if self.connection_error is not None:
            self._slots.release()
            raise self.connection_error

        self.metrics.current_batch += 1
        batch_number = self.metrics.current_batch

        task = asyncio.create_task(self._run(batch_number, records))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

        # Let the batch start before the caller reads more input.
        await asyncio.sleep(0)
        return batch_number

    async def _run(self, batch_number: int, records: List[TransformedRecord]) -> None:
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            inserted = await self.scope.insert_batch(self.schema, records)
            self.metrics.successful_records += inserted
            logger.debug(f"[BatchSubmitter] Batch {batch_number} inserted {inserted} rows")
        except InsertionError as e:
            self.metrics.failed_records += len(records)
            self.reporter.error(f"Batch {batch_number} failed ({len(records)} rows): {e}")
        except ConnectionFailure as e:
            self.metrics.failed_records += len(records)
            if self.connection_error is None:
                self.connection_error = e
                self.reporter.error(f"Connection lost at batch {batch_number}: {e}")
        finally:
            self.in_flight -= 1
            self._slots.release()

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def settle(self) -> None:
        """Wait until every dispatched batch has finished, whatever its outcome."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def drain(self) -> None:
        """Wait for every dispatched batch; raises if the connection was lost."""
        await self.settle()
        self._raise_if_disconnected()
