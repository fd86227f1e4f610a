from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy import pool
import asyncpg

from ..setup.config.models import DatabaseConfig, PoolConfig
from ..setup.logging import logger


class Database:
    """
    Represents a database connection, session management, and associated SQLAlchemy Base.
    Also builds the asyncpg pool and dedicated connections the loaders write through.
    """

    def __init__(self, engine, session_maker, base, pool_config: Optional[PoolConfig] = None):
        self.engine = engine
        self.session_maker = session_maker
        self.base = base
        self.pool_config = pool_config or PoolConfig()

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    @property
    def supports_bulk_copy(self) -> bool:
        """COPY ... FROM STDIN is a PostgreSQL feature."""
        return self.dialect_name == "postgresql"

    def create_tables(self):
        """Create all tables for the associated Base in this database."""
        self.base.metadata.create_all(self.engine)

    def create_table(self, model) -> None:
        """Create one model's table if it does not exist yet."""
        model.__table__.create(self.engine, checkfirst=True)

    def get_dsn(self, pg_config: Optional[DatabaseConfig] = None) -> str:
        """asyncpg DSN, from an explicit config or the SQLAlchemy engine URL."""
        if pg_config is not None:
            return pg_config.get_dsn()

        url = self.engine.url
        if url.password:
            return f"postgresql://{url.username}:{url.password}@{url.host}:{url.port or 5432}/{url.database}"
        return f"postgresql://{url.username}@{url.host}:{url.port or 5432}/{url.database}"

    async def get_async_pool(self) -> asyncpg.Pool:
        """
        Create asyncpg connection pool from the SQLAlchemy database configuration.

        Returns:
            asyncpg.Pool: Ready-to-use connection pool
        """
        dsn = self.get_dsn()
        settings = self.pool_config

        logger.info(f"[ConnectionFactory] Creating asyncpg pool (min: {settings.min_size}, max: {settings.max_size})")
        logger.debug(f"[ConnectionFactory] DSN: {dsn.split('@')[0]}@***")

        try:
            async_pool = await asyncpg.create_pool(
                dsn,
                min_size=settings.min_size,
                max_size=settings.max_size,
                command_timeout=settings.command_timeout,
                server_settings={'application_name': settings.application_name},
            )
            logger.info("[ConnectionFactory] AsyncPG pool created successfully")
            return async_pool
        except Exception as e:
            logger.error(f"[ConnectionFactory] Failed to create asyncpg pool: {e}")
            raise

    async def connect(self, pg_config: Optional[DatabaseConfig] = None) -> asyncpg.Connection:
        """Open a dedicated connection outside the pool."""
        return await asyncpg.connect(
            self.get_dsn(pg_config),
            command_timeout=self.pool_config.command_timeout,
            server_settings={'application_name': self.pool_config.application_name},
        )

    def dispose(self):
        self.engine.dispose()

    def __repr__(self):
        return f"Database(engine={self.engine}, session_maker={self.session_maker}, base={self.base})"


def create_database_instance(uri, base, pool_config: Optional[PoolConfig] = None):
    """Create the SQLAlchemy engine and session maker for ``uri``."""
    engine_kwargs = {}
    if make_url(uri).get_backend_name() != "sqlite":
        engine_kwargs.update(
            poolclass=pool.QueuePool,
            pool_size=5,
            max_overflow=5,
            pool_recycle=3600,
        )
    engine = create_engine(uri, **engine_kwargs)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    return Database(engine=engine, session_maker=SessionLocal, base=base, pool_config=pool_config)
