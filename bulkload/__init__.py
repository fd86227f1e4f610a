from .core.exceptions import (
    ConnectionFailure,
    IngestionError,
    InputError,
    InsertionError,
    MalformedRowError,
    ValidationError,
    WorkerFailure,
)
from .core.importer import import_csv, import_csv_sync
from .core.schemas import Metrics, StrategyTag
from .setup.config.models import ProcessorConfig, ProcessorOptions

__all__ = [
    "import_csv",
    "import_csv_sync",
    "Metrics",
    "StrategyTag",
    "ProcessorConfig",
    "ProcessorOptions",
    "IngestionError",
    "InputError",
    "MalformedRowError",
    "ValidationError",
    "InsertionError",
    "ConnectionFailure",
    "WorkerFailure",
]
