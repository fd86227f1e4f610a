"""
Configuration loader with environment variable mapping.

Environment variables (optionally from a .env file) provide the store
connection, pool sizing and processing overrides. Explicit options passed
to ``import_csv`` always win over the environment.
"""

from typing import Any, Dict, Optional
import os
import logging
from dotenv import load_dotenv

from .models import DatabaseConfig, PoolConfig, ProcessorConfig, ProcessorOptions
from .profiles import apply_profile, get_processing_defaults

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

# Environment variable -> ProcessorOptions field
PROCESSOR_ENV_MAP = {
    "INGEST_BATCH_SIZE": "batch_size",
    "INGEST_MAX_CONCURRENT_BATCHES": "max_concurrent_batches",
    "INGEST_USE_TRANSACTION": "use_transaction",
    "INGEST_USE_WORKERS": "use_workers",
    "INGEST_CHUNK_SIZE_LINES": "chunk_size_lines",
    "INGEST_USE_PG_COPY_STREAM": "use_pg_copy_stream",
    "INGEST_LOG_LEVEL": "log_level",
    "INGEST_WORKER_COUNT": "worker_count",
    "INGEST_PERSIST_CHUNK_RESULTS": "persist_chunk_results",
    "INGEST_SYNC_SCHEMA": "sync_schema",
}
BOOL_OPTIONS = {
    "use_transaction",
    "use_workers",
    "use_pg_copy_stream",
    "persist_chunk_results",
    "sync_schema",
}


def parse_bool(value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"Not a boolean: {value!r}")


class ConfigLoader:
    """Configuration loader with environment variable mapping and validation."""

    def __init__(self, env_file: Optional[str] = None):
        """
        Initialize configuration loader.

        Args:
            env_file: Path to .env file (defaults to .env in current directory)
        """
        self.env_file = env_file or ".env"
        self._env_loaded = False

    def load_environment(self, profile: Optional[str] = None):
        """Load the .env file once, then apply an optional profile."""
        if not self._env_loaded:
            self._load_env_file()
            self._env_loaded = True
        if profile:
            applied = apply_profile(profile, override_existing=False)
            logger.info(f"Applied profile '{profile}' with {len(applied)} variables")

    def _load_env_file(self):
        if os.path.exists(self.env_file):
            load_dotenv(self.env_file, override=False)
            logger.debug(f"Loaded environment variables from {self.env_file}")
        else:
            logger.debug(f"Environment file {self.env_file} not found")

    def load_database_config(self, prefix: str = "POSTGRES") -> DatabaseConfig:
        self.load_environment()
        return DatabaseConfig(
            host=os.getenv(f"{prefix}_HOST", "localhost"),
            port=int(os.getenv(f"{prefix}_PORT", "5432")),
            user=os.getenv(f"{prefix}_USER", "postgres"),
            password=os.getenv(f"{prefix}_PASSWORD", "postgres"),
            database_name=os.getenv(f"{prefix}_DBNAME", "postgres"),
            dialect=os.getenv(f"{prefix}_DIALECT", "postgresql"),
        )

    def load_pool_config(self) -> PoolConfig:
        self.load_environment()
        return PoolConfig(
            min_size=int(os.getenv("INGEST_ASYNC_POOL_MIN_SIZE", "2")),
            max_size=int(os.getenv("INGEST_ASYNC_POOL_MAX_SIZE", "10")),
            command_timeout=float(os.getenv("INGEST_COMMAND_TIMEOUT", "60")),
        )

    def load_environment_options(self) -> ProcessorOptions:
        """Processing overrides found in the environment."""
        self.load_environment()
        values: Dict[str, Any] = {}
        for env_name, field_name in PROCESSOR_ENV_MAP.items():
            raw = os.getenv(env_name)
            if raw is None or raw.strip() == "":
                continue
            if field_name in BOOL_OPTIONS:
                values[field_name] = parse_bool(raw)
            else:
                values[field_name] = raw.strip()
        return ProcessorOptions(**values)

    def build_processor_config(self, options: Optional[ProcessorOptions] = None) -> ProcessorConfig:
        """
        Resolve a run's configuration.

        Precedence, lowest first: host-derived defaults, environment,
        explicit options.
        """
        merged = get_processing_defaults()
        merged.update(self.load_environment_options().overrides())
        return ProcessorConfig.from_options(merged, options)


_loader: Optional[ConfigLoader] = None


def get_config_loader(env_file: Optional[str] = None) -> ConfigLoader:
    """Shared loader; a new env_file replaces it."""
    global _loader
    if _loader is None or (env_file and env_file != _loader.env_file):
        _loader = ConfigLoader(env_file)
    return _loader
