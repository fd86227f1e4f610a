from .batching import BatchSubmitter
from .bulk_copy import BulkCopyLoader
from .parallel import ParallelChunkLoader, build_chunks, compute_line_ranges, process_chunk
from .streaming import StreamingBatchLoader

__all__ = [
    "BatchSubmitter",
    "BulkCopyLoader",
    "ParallelChunkLoader",
    "StreamingBatchLoader",
    "build_chunks",
    "compute_line_ranges",
    "process_chunk",
]
