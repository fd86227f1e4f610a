"""
Pydantic configuration models with validation.

DatabaseConfig: connection parameters for the destination store
PoolConfig: asyncpg pool sizing
ProcessorOptions: caller-supplied overrides, every key optional
ProcessorConfig: the immutable, fully-resolved configuration of one run
"""

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
)
from typing import Annotated, Any, Dict, Literal, Optional

from ...core.constants import DESTINATIONS


def _normalize_log_level(value):
    if isinstance(value, str):
        value = value.strip().lower()
        if value == "warning":
            return "warn"
    return value


LogLevel = Annotated[
    Literal["debug", "info", "warn", "error"], BeforeValidator(_normalize_log_level)
]


class DatabaseConfig(BaseModel):
    """Database connection configuration with validation."""

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, ge=1, le=65535, description="Database port")
    user: str = Field(default="postgres", description="Database username")
    password: str = Field(default="postgres", description="Database password")
    database_name: str = Field(default="postgres", description="Database name")
    dialect: str = Field(default="postgresql", description="SQLAlchemy dialect name")

    @field_validator('host')
    @classmethod
    def validate_host(cls, v):
        if not v.strip():
            raise ValueError('Host cannot be empty')
        return v.strip()

    def get_connection_string(self, db_name: Optional[str] = None) -> str:
        """Get SQLAlchemy connection string."""
        target_db = db_name or self.database_name
        return f"{self.dialect}://{self.user}:{self.password}@{self.host}:{self.port}/{target_db}"

    def get_dsn(self) -> str:
        """Get libpq-style DSN for asyncpg."""
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database_name}"


class PoolConfig(BaseModel):
    """asyncpg pool sizing."""

    min_size: int = Field(default=2, ge=1, le=50, description="Minimum pooled connections")
    max_size: int = Field(default=10, ge=1, le=100, description="Maximum pooled connections")
    command_timeout: float = Field(default=60.0, gt=0, description="Per-statement timeout in seconds")
    application_name: str = Field(default="bulkload", description="application_name sent to PostgreSQL")


class ProcessorOptions(BaseModel):
    """
    Caller overrides for one import run.

    Every key is optional; unknown keys are rejected. The camelCase spellings
    accepted by older callers are kept as aliases.
    """
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    batch_size: Optional[int] = Field(
        default=None, ge=1, le=100000,
        validation_alias=AliasChoices("batch_size", "batchSize"),
    )
    max_concurrent_batches: Optional[int] = Field(
        default=None, ge=1, le=256,
        validation_alias=AliasChoices("max_concurrent_batches", "maxConcurrentBatches"),
    )
    use_transaction: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("use_transaction", "useTransaction"),
    )
    use_workers: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("use_workers", "useWorkers"),
    )
    chunk_size_lines: Optional[int] = Field(
        default=None, ge=1,
        validation_alias=AliasChoices("chunk_size_lines", "chunkSizeLines", "chunkSize"),
    )
    use_pg_copy_stream: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("use_pg_copy_stream", "usePgCopyStream"),
    )
    pg_config: Optional[DatabaseConfig] = Field(
        default=None,
        validation_alias=AliasChoices("pg_config", "pgConfig"),
    )
    log_level: Optional[LogLevel] = Field(
        default=None,
        validation_alias=AliasChoices("log_level", "logLevel"),
    )
    worker_count: Optional[int] = Field(
        default=None, ge=1, le=256,
        validation_alias=AliasChoices("worker_count", "workerCount"),
    )
    persist_chunk_results: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("persist_chunk_results", "persistChunkResults"),
    )
    sync_schema: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("sync_schema", "syncSchema"),
    )

    def overrides(self) -> Dict[str, Any]:
        """Only the keys the caller actually set."""
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if getattr(self, name) is not None
        }


class ProcessorConfig(BaseModel):
    """
    Resolved configuration of one import run.

    Frozen: a derived setting (such as the large-file batch clamp) is a new
    value made with ``model_copy(update=...)``.
    """
    model_config = ConfigDict(frozen=True)

    batch_size: int = Field(default=500, ge=1, le=100000, description="Rows per insert batch")
    max_concurrent_batches: int = Field(
        default=5, ge=1, le=256, description="Batches allowed in flight at once"
    )
    use_transaction: bool = Field(
        default=True, description="Run every batch of the import in one transaction"
    )
    use_workers: bool = Field(default=True, description="Allow the parallel chunk strategy")
    chunk_size_lines: int = Field(
        default=50000, ge=1, description="Lines a chunk worker reads between progress log lines"
    )
    use_pg_copy_stream: bool = Field(
        default=True, description="Prefer the native COPY path when the store supports it"
    )
    pg_config: Optional[DatabaseConfig] = Field(
        default=None, description="Alternate connection parameters for the COPY connection"
    )
    log_level: LogLevel = Field(default="info", description="Progress reporter threshold")
    worker_count: int = Field(default=1, ge=1, le=256, description="Chunk worker processes")
    persist_chunk_results: bool = Field(
        default=True, description="Insert rows validated by chunk workers"
    )
    sync_schema: bool = Field(
        default=True, description="Create the destination table if it does not exist"
    )
    destinations: Dict[str, Any] = Field(
        default_factory=lambda: dict(DESTINATIONS),
        exclude=True,
        description="Destination identifier to DestinationSchema",
    )

    @classmethod
    def from_options(cls, defaults: Dict[str, Any], options: Optional[ProcessorOptions] = None) -> "ProcessorConfig":
        """Merge caller options over the defaults."""
        merged = dict(defaults)
        if options is not None:
            merged.update(options.overrides())
        return cls(**merged)
