"""
Database setup and connection management for the key store.

This module handles:
- SQLAlchemy engine creation (SQLite, Azure SQL, any other SQLAlchemy URL)
- Connection pooling configuration
- Scoped transactions (commit on success, rollback on failure, always close)
- Table creation
"""

import urllib.parse
from contextlib import contextmanager
from typing import Generator, Iterator

from loguru import logger
from sqlalchemy import create_engine, inspect, pool, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from apikeys.config import ServiceConfig
from apikeys.models import Base
import auth.models  # noqa: F401  registers the admins table on Base


class DatabaseManager:
    """
    Manages the engine and session lifecycle.

    Usage:
        db_manager = DatabaseManager(config)
        db_manager.initialize()
        with db_manager.session_scope() as session:
            # Do database operations
            pass
    """

    # Dependencies first
    TABLE_CREATION_ORDER = [
        "api_keys",
        "users",   # Depends on api_keys
        "admins",
    ]

    def __init__(self, config: ServiceConfig):
        self.config = config
        self._engine = None
        self._SessionLocal = None
        self._db_type = None

    def initialize(self):
        """Create the engine and session factory, then create missing tables."""
        if self._engine is not None:
            logger.warning("[DB] DatabaseManager already initialized")
            return

        connection_uri = self._build_connection_uri(self.config.database_url)
        self._engine = self._create_engine(connection_uri)
        self._SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self._engine,
            expire_on_commit=False
        )
        self.create_tables()
        logger.info(f"[DB] ✓ Database initialized ({self._db_type})")

    def _create_engine(self, connection_uri: str):
        """Create SQLAlchemy engine with pooling"""
        if connection_uri.startswith("sqlite"):
            self._db_type = "sqlite"
            kwargs = {
                "echo": self.config.echo,
                "connect_args": {"check_same_thread": False},
            }
            if self._is_memory_sqlite(connection_uri):
                # One shared connection, otherwise every thread sees its own empty database
                kwargs["poolclass"] = pool.StaticPool
            return create_engine(connection_uri, **kwargs)

        self._db_type = "mssql" if connection_uri.startswith("mssql") else connection_uri.split(":", 1)[0]
        return create_engine(
            connection_uri,
            poolclass=pool.QueuePool,
            pool_size=self.config.pool_size,
            max_overflow=self.config.max_overflow,
            pool_recycle=self.config.pool_recycle,
            pool_timeout=self.config.pool_timeout,
            pool_pre_ping=True,
            echo=self.config.echo,
        )

    @staticmethod
    def _is_memory_sqlite(connection_uri: str) -> bool:
        return connection_uri in ("sqlite://", "sqlite:///:memory:") or ":memory:" in connection_uri

    @staticmethod
    def _build_connection_uri(connection_string: str) -> str:
        """
        Build SQLAlchemy connection URI from connection string.
        Accepts SQLAlchemy URLs as-is and converts Azure SQL connection strings to pymssql.
        """
        if not connection_string:
            raise ValueError("Connection string is empty")

        if "://" in connection_string:
            return connection_string

        # Azure SQL - parse connection string
        # Format: Server=tcp:server.database.windows.net,1433;Initial Catalog=db;User ID=user;Password=pass
        parts = {}
        for part in connection_string.split(';'):
            if '=' in part:
                key, value = part.split('=', 1)
                parts[key.strip()] = value.strip()

        required = ['Server', 'Initial Catalog', 'User ID', 'Password']
        missing = [f for f in required if f not in parts]
        if missing:
            raise ValueError(f"Invalid connection string: missing {missing}")

        server = parts['Server'].replace('tcp:', '').split(',')[0]
        database = parts['Initial Catalog']
        user = parts['User ID']
        password_encoded = urllib.parse.quote_plus(parts['Password'])

        return f"mssql+pymssql://{user}:{password_encoded}@{server}:1433/{database}"

    def create_tables(self):
        """Create all tables if they don't exist (IDEMPOTENT)"""
        engine = self.get_engine()
        existing_tables = set(inspect(engine).get_table_names())

        for table_name in self.TABLE_CREATION_ORDER:
            table = Base.metadata.tables[table_name]
            if table_name not in existing_tables:
                table.create(engine, checkfirst=True)
                existing_tables.add(table_name)
                logger.info(f"[DB] ✓ Created table: {table_name}")
            else:
                logger.debug(f"[DB] Table already exists: {table_name}")

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Scoped transaction.

        Commits when the block exits normally. On any exception the transaction
        is rolled back and the exception re-raised; a failing rollback is logged
        and swallowed so it cannot mask the original error. The session is
        always closed, returning its connection to the pool.
        """
        if self._SessionLocal is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        session = self._SessionLocal()
        try:
            yield session
            session.commit()
        except Exception as e:
            try:
                session.rollback()
            except Exception as rollback_error:
                logger.error(f"[DB] Rollback failed: {rollback_error}")
            logger.debug(f"[DB] Transaction rolled back: {type(e).__name__}")
            raise
        finally:
            try:
                session.close()
            except Exception as close_error:
                logger.error(f"[DB] Failed to close session: {close_error}")

    def get_session(self) -> Generator[Session, None, None]:
        """
        FastAPI dependency variant of session_scope.

        Usage:
            @app.get("/endpoint")
            def endpoint(db: Session = Depends(db_manager.get_session)):
                ...
        """
        with self.session_scope() as session:
            yield session

    def health_check(self) -> bool:
        """Check if database is reachable"""
        if self._SessionLocal is None:
            return False
        try:
            with self.session_scope() as session:
                session.execute(text("SELECT 1"))
            logger.info("[DB] ✓ Database health check passed")
            return True
        except SQLAlchemyError as e:
            logger.error(f"[DB] ❌ Database health check failed: {e}")
            return False

    def get_engine(self):
        """Get the SQLAlchemy engine (for migrations, admin tasks)"""
        if self._engine is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._engine

    def dispose(self):
        """Close all pooled connections (shutdown)."""
        if self._engine is not None:
            self._engine.dispose()
            logger.info("[DB] Connection pool closed")
        self._engine = None
        self._SessionLocal = None

    def is_using_sqlite(self) -> bool:
        return self._db_type == "sqlite"

