"""
Error taxonomy for the ingestion pipeline.

Row-level errors (MalformedRowError, ValidationError) are recovered by the
application-level loaders and only show up in the run metrics. Run-level
errors (InputError, ConnectionFailure, WorkerFailure and an InsertionError
from the bulk-copy path) reach the caller.
"""
from typing import Optional


class IngestionError(Exception):
    """Base class for every error raised by the pipeline."""


class InputError(IngestionError):
    """Missing file path, unknown destination, missing file or bad options."""


class MalformedRowError(IngestionError):
    """A data line whose field count does not match the header."""

    def __init__(self, line_number: int, expected: int, actual: int):
        self.line_number = line_number
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Line {line_number} has {actual} fields, header has {expected}"
        )


class ValidationError(IngestionError):
    """A row whose fields fail type coercion or required-field checks."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class InsertionError(IngestionError):
    """The store rejected a batch or a bulk-copy stream."""


class ConnectionFailure(IngestionError):
    """The store became unreachable or the source stream failed mid-run."""


class WorkerFailure(IngestionError):
    """A chunk worker failed; the parallel run is aborted as a whole."""
