"""
DatabaseService - the store surface the loaders write through.

Batch inserts go through an asyncpg pool; the bulk path opens one dedicated
connection and streams the source file with COPY. Table creation runs
through the SQLAlchemy engine.
"""
import asyncio
import os
from contextlib import asynccontextmanager
from typing import List, Optional, Sequence

import asyncpg
from sqlalchemy.exc import SQLAlchemyError, OperationalError

from . import utils as base
from .engine import Database
from ..core.exceptions import ConnectionFailure, InsertionError
from ..core.schemas import DestinationSchema, StoreCapabilities, TransformedRecord
from ..core.transforms import record_values
from ..setup.config.models import DatabaseConfig
from ..setup.logging import logger

# Errors meaning the connection itself is gone, as opposed to rejected data.
CONNECTION_ERRORS = (
    OSError,
    asyncio.TimeoutError,
    asyncpg.exceptions.ConnectionDoesNotExistError,
    asyncpg.exceptions.CannotConnectNowError,
    asyncpg.exceptions.InterfaceError,
)


def _classify(error: Exception, context: str) -> Exception:
    if isinstance(error, CONNECTION_ERRORS):
        return ConnectionFailure(f"{context}: {error}")
    return InsertionError(f"{context}: {error}")


class WriteScope:
    """
    A unit of writing for one import run.

    ``insert_batch`` returns the number of rows written or raises
    InsertionError / ConnectionFailure.
    """

    async def insert_batch(self, schema: DestinationSchema, records: Sequence[TransformedRecord]) -> int:
        raise NotImplementedError


class TransactionalWriteScope(WriteScope):
    """
    Every batch runs on one connection inside one outer transaction.

    Statements on a single asyncpg connection cannot overlap, so batches are
    serialized with a lock. Each batch is a savepoint: a rejected batch is
    rolled back alone and the outer transaction stays usable.
    """

    def __init__(self, conn: asyncpg.Connection):
        self.conn = conn
        self._lock = asyncio.Lock()

    async def insert_batch(self, schema, records):
        if not records:
            return 0
        columns = schema.columns
        sql = base.insert_sql(schema.table_name, columns)
        rows = [record_values(record, columns) for record in records]
        async with self._lock:
            try:
                async with self.conn.transaction():
                    await self.conn.executemany(sql, rows)
            except Exception as e:
                raise _classify(e, f"Insert into '{schema.table_name}' failed") from e
        return len(rows)


class PooledWriteScope(WriteScope):
    """Each batch acquires its own pooled connection and commits on its own."""

    def __init__(self, service: "DatabaseService", pool: asyncpg.Pool):
        self.service = service
        self.pool = pool

    async def insert_batch(self, schema, records):
        if not records:
            return 0
        columns = schema.columns
        sql = base.insert_sql(schema.table_name, columns)
        rows = [record_values(record, columns) for record in records]
        try:
            async with self.service.managed_connection(self.pool) as conn:
                async with conn.transaction():
                    await conn.executemany(sql, rows)
        except Exception as e:
            raise _classify(e, f"Insert into '{schema.table_name}' failed") from e
        return len(rows)


class DatabaseService:
    """
    Handles the store side of an import: pooled batch inserts, the COPY
    stream and destination table creation.
    """

    def __init__(self, database: Database):
        self.database = database
        self.active_connections = set()
        self._pool_lock = asyncio.Lock()
        self._pool: Optional[asyncpg.Pool] = None

    @property
    def supports_bulk_copy(self) -> bool:
        return self.database.supports_bulk_copy

    @property
    def capabilities(self) -> StoreCapabilities:
        return StoreCapabilities(supports_bulk_copy=self.supports_bulk_copy)

    async def get_or_create_pool(self) -> asyncpg.Pool:
        """Get or create connection pool safely."""
        async with self._pool_lock:
            if self._pool is None:
                try:
                    self._pool = await self.database.get_async_pool()
                except CONNECTION_ERRORS as e:
                    raise ConnectionFailure(f"Cannot reach the store: {e}") from e
            return self._pool

    @asynccontextmanager
    async def managed_connection(self, pool: asyncpg.Pool):
        """Acquire a pooled connection and always hand it back."""
        conn = None
        try:
            conn = await pool.acquire()
            self.active_connections.add(id(conn))
            yield conn
        finally:
            if conn is not None:
                self.active_connections.discard(id(conn))
                try:
                    await pool.release(conn)
                except Exception as e:
                    logger.error(f"[DatabaseService] Failed to release connection: {e}")

    @asynccontextmanager
    async def write_scope(self, use_transaction: bool = True):
        """
        Yield a WriteScope for one run.

        With ``use_transaction`` the scope commits once when the block exits
        normally and rolls back everything when it raises. Without it, each
        batch is durable as soon as it is written.
        """
        pool = await self.get_or_create_pool()

        if not use_transaction:
            yield PooledWriteScope(self, pool)
            return

        async with self.managed_connection(pool) as conn:
            transaction = conn.transaction()
            await transaction.start()
            logger.debug("[DatabaseService] Opened import transaction")
            try:
                yield TransactionalWriteScope(conn)
            except BaseException:
                try:
                    await transaction.rollback()
                    logger.warning("[DatabaseService] Import transaction rolled back")
                except Exception as e:
                    logger.error(f"[DatabaseService] Rollback failed: {e}")
                raise
            try:
                await transaction.commit()
            except Exception as e:
                raise _classify(e, "Commit of import transaction failed") from e
            logger.debug("[DatabaseService] Import transaction committed")

    async def copy_file(
        self,
        schema: DestinationSchema,
        columns: List[str],
        file_path: str,
        pg_config: Optional[DatabaseConfig] = None,
    ) -> str:
        """
        Stream ``file_path`` into the destination with COPY on a dedicated connection.

        The whole file is one transaction: on any error nothing is kept.

        Returns:
            The server's command status (``COPY <n>``).
        """
        logger.debug(f"[DatabaseService] {base.copy_sql(schema.table_name, columns)}")
        try:
            conn = await self.database.connect(pg_config)
        except CONNECTION_ERRORS as e:
            raise ConnectionFailure(f"Cannot open COPY connection: {e}") from e

        try:
            async with conn.transaction():
                return await conn.copy_to_table(
                    schema.table_name,
                    source=os.fspath(file_path),
                    columns=columns,
                    format="csv",
                    header=True,
                )
        except Exception as e:
            raise _classify(e, f"COPY into '{schema.table_name}' failed") from e
        finally:
            await conn.close()

    def sync_schema(self, schema: DestinationSchema) -> None:
        """Create the destination table when it does not exist yet."""
        try:
            self.database.create_table(schema.model)
        except OperationalError as e:
            raise ConnectionFailure(f"Cannot reach the store to create '{schema.table_name}': {e}") from e
        except SQLAlchemyError as e:
            raise InsertionError(f"Cannot create '{schema.table_name}': {e}") from e
        logger.info(f"[DatabaseService] Table '{schema.table_name}' is ready")

    async def close(self):
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
        self.database.dispose()
