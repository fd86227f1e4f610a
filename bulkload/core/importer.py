"""
Entry point of the ingestion pipeline.

``import_csv`` resolves the run's configuration, validates its inputs
before touching the file or the store, optionally creates the destination
table and hands over to the strategy selector.
"""
import asyncio
import os
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..database.engine import create_database_instance
from ..database.models import MainBase
from ..database.service import DatabaseService
from ..setup.config.loader import ConfigLoader, get_config_loader
from ..setup.config.models import ProcessorConfig, ProcessorOptions
from ..setup.logging import configure_logging, logger
from .exceptions import IngestionError, InputError
from .reporting import ProgressReporter
from .schemas import Metrics
from .strategies import process_gigabyte_file

OptionsLike = Union[ProcessorOptions, Mapping[str, Any], None]


def resolve_options(options: OptionsLike) -> Optional[ProcessorOptions]:
    if options is None or isinstance(options, ProcessorOptions):
        return options
    if not isinstance(options, Mapping):
        raise InputError(f"Options must be a mapping, got {type(options).__name__}")
    try:
        return ProcessorOptions.model_validate(dict(options))
    except PydanticValidationError as e:
        raise InputError(f"Invalid options: {e}") from e


def resolve_config(options: OptionsLike, config_loader: ConfigLoader) -> ProcessorConfig:
    parsed = resolve_options(options)
    try:
        return config_loader.build_processor_config(parsed)
    except (PydanticValidationError, ValueError) as e:
        raise InputError(f"Invalid configuration: {e}") from e


def validate_inputs(file_path: Any, destination: Any, config: ProcessorConfig) -> str:
    """Check the call's arguments; returns the file path as a string."""
    if not isinstance(file_path, (str, os.PathLike)) or not os.fspath(file_path):
        raise InputError("File path is required")
    if not isinstance(destination, str) or destination not in config.destinations:
        available = ", ".join(sorted(config.destinations))
        raise InputError(f"Unknown destination '{destination}'. Available: {available}")

    path = os.fspath(file_path)
    if not os.path.isfile(path):
        raise InputError(f"File not found: {path}")
    return path


def create_store(config_loader: ConfigLoader) -> DatabaseService:
    """DatabaseService for the store described by the environment."""
    db_config = config_loader.load_database_config()
    database = create_database_instance(
        db_config.get_connection_string(),
        MainBase,
        pool_config=config_loader.load_pool_config(),
    )
    return DatabaseService(database)


async def import_csv(
    file_path: Union[str, os.PathLike],
    destination: str,
    options: OptionsLike = None,
    *,
    store=None,
    config_loader: Optional[ConfigLoader] = None,
) -> Metrics:
    """
    Import one delimited file into a destination table.

    Args:
        file_path: Source file; first line is the header.
        destination: Destination identifier (``engineer``, ``team``, ...).
        options: ProcessorOptions or a mapping of option names.
        store: Store to write to; built from the environment when omitted
            and closed again afterwards.
        config_loader: Source of environment configuration.

    Returns:
        Metrics of the completed run.

    Raises:
        InputError: Bad arguments; raised before any file or store I/O.
        ConnectionFailure, InsertionError, WorkerFailure: The run failed.
    """
    configure_logging()
    config_loader = config_loader or get_config_loader()
    config = resolve_config(options, config_loader)
    path = validate_inputs(file_path, destination, config)
    schema = config.destinations[destination]

    owns_store = store is None
    if owns_store:
        store = create_store(config_loader)

    reporter = ProgressReporter(config.log_level, component="Importer")
    try:
        if config.sync_schema:
            await asyncio.to_thread(store.sync_schema, schema)
        return await process_gigabyte_file(config, path, schema, store, reporter)
    except IngestionError as e:
        logger.error(f"[Importer] Import of {path} into '{destination}' failed: {e}")
        raise
    finally:
        if owns_store:
            await store.close()


def import_csv_sync(file_path, destination, options: OptionsLike = None, **kwargs) -> Metrics:
    """Blocking wrapper around ``import_csv`` for callers without an event loop."""
    return asyncio.run(import_csv(file_path, destination, options, **kwargs))
