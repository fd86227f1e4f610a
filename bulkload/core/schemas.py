from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import time

# A transformed row, keyed by destination column.
TransformedRecord = Dict[str, Any]


class StrategyTag(str, Enum):
    """Execution strategy picked for one import run."""
    BULK_COPY = "bulk_copy"
    PARALLEL = "parallel"
    STREAMING = "streaming"


class FieldKind(str, Enum):
    INT = "int"
    STR = "str"
    DATE = "date"
    BOOL = "bool"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: FieldKind = FieldKind.STR
    required: bool = True


@dataclass(frozen=True)
class DestinationSchema:
    """A destination table: its identifier, SQLAlchemy model and field specs."""
    name: str
    model: Any
    fields: Tuple[FieldSpec, ...]

    @property
    def table_name(self) -> str:
        return self.model.__tablename__

    @property
    def columns(self) -> List[str]:
        return [spec.name for spec in self.fields]

    def __repr__(self) -> str:
        return f"DestinationSchema(name='{self.name}', table='{self.table_name}')"


@dataclass(frozen=True)
class StoreCapabilities:
    supports_bulk_copy: bool = False


@dataclass
class Metrics:
    """
    Counters for one import run.

    The active loader is the only writer. ``successful_records +
    failed_records`` never exceeds ``total_records`` while a run is in
    progress, and equals it once the run completes. Lines whose field count
    does not match the header are tallied in ``skipped_records`` instead.
    """
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    total_records: int = 0
    successful_records: int = 0
    failed_records: int = 0
    skipped_records: int = 0
    current_batch: int = 0
    total_batches: int = 0
    strategy: Optional[StrategyTag] = None

    def start(self) -> None:
        self.start_time = time.time()

    def finish(self) -> None:
        self.end_time = time.time()

    @property
    def processed_records(self) -> int:
        return self.successful_records + self.failed_records

    @property
    def elapsed_seconds(self) -> float:
        if self.start_time is None:
            return 0.0
        end = self.end_time if self.end_time is not None else time.time()
        return max(end - self.start_time, 0.0)

    @property
    def records_per_second(self) -> float:
        elapsed = self.elapsed_seconds
        if elapsed <= 0:
            return 0.0
        return self.processed_records / elapsed

    def as_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy.value if self.strategy else None,
            "total_records": self.total_records,
            "successful_records": self.successful_records,
            "failed_records": self.failed_records,
            "skipped_records": self.skipped_records,
            "total_batches": self.total_batches,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "records_per_second": round(self.records_per_second, 2),
        }


@dataclass(frozen=True)
class Chunk:
    """Half-open range ``[start_line, end_line)`` of 1-based data lines (header is line 0)."""
    start_line: int
    end_line: int
    file_path: str
    destination: str
    header_row: Tuple[str, ...]
    batch_size: int
    spool_path: Optional[str] = None
    progress_every: Optional[int] = None

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line


@dataclass(frozen=True)
class ChunkResult:
    start_line: int
    end_line: int
    successful_records: int = 0
    failed_records: int = 0
    skipped_records: int = 0
    spool_path: Optional[str] = None
    batches: int = 0
    processed: int = 0

