"""
Parallel chunk loader.

The data lines are split into contiguous, disjoint ranges; each range is
parsed and validated by its own worker process. Workers never talk to the
store: they spool validated batches to a private file, and the event loop
inserts the spools once every worker has settled.
"""
import asyncio
import math
import os
import pickle
import shutil
import tempfile
from concurrent.futures import ProcessPoolExecutor
from itertools import islice
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from ....setup.config.models import ProcessorConfig
from ....setup.logging import logger
from ...exceptions import ConnectionFailure, MalformedRowError, ValidationError, WorkerFailure
from ...parsing import count_file_lines, parse_line, read_header, strip_line_ending
from ...reporting import ProgressReporter
from ...schemas import Chunk, ChunkResult, DestinationSchema, Metrics, StrategyTag, TransformedRecord
from ...transforms import build_row, transform_row
from .batching import BatchSubmitter


def compute_line_ranges(total_lines: int, worker_count: int) -> List[Tuple[int, int]]:
    """
    Split data lines ``1..total_lines`` into at most ``worker_count`` half-open ranges.

    Ranges are ``ceil(total_lines / worker_count)`` lines long, the last one
    taking the remainder. They are contiguous and disjoint; their union is
    exactly ``[1, total_lines + 1)``. Empty ranges are never produced.
    """
    if total_lines <= 0:
        return []
    if worker_count < 1:
        raise ValueError("worker_count must be at least 1")

    lines_per_chunk = math.ceil(total_lines / worker_count)

    ranges = []
    for i in range(worker_count):
        start = i * lines_per_chunk + 1
        end = min((i + 1) * lines_per_chunk + 1, total_lines + 1)
        if start < end:
            ranges.append((start, end))
    return ranges


def build_chunks(
    total_lines: int,
    worker_count: int,
    file_path: str,
    destination: str,
    header_row: Sequence[str],
    batch_size: int,
    spool_dir: Optional[str] = None,
    progress_every: Optional[int] = None,
) -> List[Chunk]:
    chunks = []
    for index, (start, end) in enumerate(compute_line_ranges(total_lines, worker_count)):
        spool_path = os.path.join(spool_dir, f"chunk-{index:05d}.pkl") if spool_dir else None
        chunks.append(Chunk(
            start_line=start,
            end_line=end,
            file_path=file_path,
            destination=destination,
            header_row=tuple(header_row),
            batch_size=batch_size,
            spool_path=spool_path,
            progress_every=progress_every,
        ))
    return chunks


def process_chunk(chunk: Chunk) -> ChunkResult:
    """
    Worker entry point: parse and validate one chunk's lines.

    Runs in a separate process and shares nothing with its siblings. The
    file is scanned from the top to reach ``start_line``. When the chunk has
    a spool path, every full batch of valid records is pickled to it. Progress
    is logged every ``progress_every`` lines.
    """
    successful = failed = skipped = batches = processed = 0
    batch: List[TransformedRecord] = []
    spool = open(chunk.spool_path, "wb") if chunk.spool_path else None

    def flush():
        nonlocal successful, batches
        successful += len(batch)
        batches += 1
        if spool is not None:
            pickle.dump(batch, spool, protocol=pickle.HIGHEST_PROTOCOL)

    try:
        with open(chunk.file_path, "rb") as handle:
            lines = islice(handle, chunk.start_line, chunk.end_line)
            for line_number, raw in enumerate(lines, start=chunk.start_line):
                processed += 1
                if chunk.progress_every and processed % chunk.progress_every == 0:
                    logger.debug(
                        f"[ChunkWorker] [{chunk.start_line}, {chunk.end_line}): {processed}/{chunk.line_count} lines read"
                    )
                line = strip_line_ending(raw.decode("utf-8"))
                try:
                    row = build_row(chunk.header_row, parse_line(line), line_number)
                    batch.append(transform_row(row, chunk.destination))
                except MalformedRowError:
                    skipped += 1
                    continue
                except ValidationError:
                    failed += 1
                    continue

                if len(batch) >= chunk.batch_size:
                    flush()
                    batch = []

        if batch:
            flush()
    finally:
        if spool is not None:
            spool.close()

    return ChunkResult(
        start_line=chunk.start_line,
        end_line=chunk.end_line,
        successful_records=successful,
        failed_records=failed,
        skipped_records=skipped,
        spool_path=chunk.spool_path,
        batches=batches,
        processed=processed,
    )


def iter_spool(spool_path: str) -> Iterator[List[TransformedRecord]]:
    """Yield the batches a worker spooled, in the order it wrote them."""
    with open(spool_path, "rb") as handle:
        while True:
            try:
                yield pickle.load(handle)
            except EOFError:
                return


class ParallelChunkLoader:
    """
    Fan-out/fan-in loader for large files.

    ``executor_factory`` and ``worker`` default to a process pool running
    ``process_chunk``; both are injectable so the orchestration can run on
    threads.
    """

    def __init__(
        self,
        store,
        reporter: Optional[ProgressReporter] = None,
        executor_factory: Callable = ProcessPoolExecutor,
        worker: Callable[[Chunk], ChunkResult] = process_chunk,
    ):
        self.store = store
        self.reporter = reporter or ProgressReporter(component="ParallelLoader")
        self.executor_factory = executor_factory
        self.worker = worker

    async def load(
        self,
        config: ProcessorConfig,
        file_path: str,
        schema: DestinationSchema,
        metrics: Optional[Metrics] = None,
    ) -> Metrics:
        metrics = metrics or Metrics()
        metrics.strategy = StrategyTag.PARALLEL
        if metrics.start_time is None:
            metrics.start()

        header_row = read_header(file_path)
        total_lines = max(count_file_lines(file_path) - 1, 0)
        metrics.total_batches = math.ceil(total_lines / config.batch_size) if total_lines else 0

        spool_dir = tempfile.mkdtemp(prefix="bulkload-") if config.persist_chunk_results else None
        try:
            chunks = build_chunks(
                total_lines,
                config.worker_count,
                file_path,
                schema.name,
                header_row,
                config.batch_size,
                spool_dir=spool_dir,
                progress_every=config.chunk_size_lines,
            )
            self.reporter.info(
                f"Processing {total_lines} lines of {file_path} in {len(chunks)} chunks "
                f"with {config.worker_count} workers"
            )

            results = await self._run_workers(chunks, config.worker_count, metrics)
            validated = sum(result.successful_records for result in results)
            metrics.failed_records += sum(result.failed_records for result in results)
            metrics.skipped_records += sum(result.skipped_records for result in results)

            if config.persist_chunk_results:
                await self._persist(config, schema, results, metrics)
            else:
                metrics.successful_records += validated
                metrics.current_batch = sum(result.batches for result in results)
                self.reporter.warn(
                    f"persist_chunk_results is off: {validated} rows validated, none written"
                )
        finally:
            if spool_dir:
                shutil.rmtree(spool_dir, ignore_errors=True)

        metrics.total_records = metrics.successful_records + metrics.failed_records
        metrics.finish()
        self.reporter.info(f"Completed processing {file_path} for '{schema.name}'")
        self.reporter.final(metrics)
        return metrics

    async def _run_workers(self, chunks: List[Chunk], worker_count: int, metrics: Metrics) -> List[ChunkResult]:
        """Run every chunk and wait for all of them, failing the run if any failed."""
        if not chunks:
            return []

        loop = asyncio.get_running_loop()
        results: List[ChunkResult] = []
        errors = []

        with self.executor_factory(max_workers=min(worker_count, len(chunks))) as executor:
            futures = [loop.run_in_executor(executor, self.worker, chunk) for chunk in chunks]
            for done, future in enumerate(asyncio.as_completed(futures), start=1):
                try:
                    result = await future
                except Exception as e:
                    errors.append(e)
                    logger.error(f"[ParallelLoader] Chunk worker failed: {e}")
                    continue
                results.append(result)
                self.reporter.info(
                    f"Chunk [{result.start_line}, {result.end_line}) done ({done}/{len(chunks)}): "
                    f"{result.successful_records} valid, {result.failed_records} invalid, "
                    f"{result.skipped_records} malformed"
                )

        if errors:
            metrics.finish()
            raise WorkerFailure(
                f"{len(errors)} of {len(chunks)} chunk workers failed; first error: {errors[0]}"
            ) from errors[0]

        return sorted(results, key=lambda result: result.start_line)

    async def _persist(
        self,
        config: ProcessorConfig,
        schema: DestinationSchema,
        results: List[ChunkResult],
        metrics: Metrics,
    ) -> None:
        """Insert the spooled batches through the same admission policy as streaming."""
        async with self.store.write_scope(config.use_transaction) as scope:
            submitter = BatchSubmitter(scope, schema, metrics, self.reporter, config.max_concurrent_batches)
            try:
                for result in results:
                    if not result.spool_path or not os.path.exists(result.spool_path):
                        continue
                    for batch in iter_spool(result.spool_path):
                        await submitter.submit(batch)
                await submitter.drain()
            except ConnectionFailure as e:
                await submitter.settle()
                metrics.finish()
                self.reporter.error(f"Store connection lost while persisting chunks: {e}")
                raise
