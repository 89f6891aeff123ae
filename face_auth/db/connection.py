"""
Database Connection Management

Handles PostgreSQL connection pooling and connection lifecycle.
Provides context managers for safe connection handling.
"""

from typing import Optional
from contextlib import contextmanager

import psycopg2
from psycopg2.pool import SimpleConnectionPool

from ..core.config import DatabaseSettings
from ..core.exceptions import DatabaseConnectionError
from ..core.logger import get_logger

logger = get_logger(__name__)


def _connect_kwargs(config: DatabaseSettings) -> dict:
    if config.database_url:
        return {"dsn": config.database_url}
    return {
        "host": config.host,
        "port": config.port,
        "database": config.name,
        "user": config.user,
        "password": config.password,
    }


def create_connection_pool(config: DatabaseSettings) -> SimpleConnectionPool:
    """
    Create a connection pool for the configured database.

    Raises:
        DatabaseConnectionError: if the pool cannot be created
    """
    try:
        pool = SimpleConnectionPool(
            config.pool_min_conn,
            config.pool_max_conn,
            **_connect_kwargs(config),
        )
    except psycopg2.Error as e:
        raise DatabaseConnectionError(details=str(e)) from e

    logger.info(
        f"Database connection pool initialized "
        f"({config.pool_min_conn}-{config.pool_max_conn} connections)"
    )
    return pool


@contextmanager
def get_connection(pool: Optional[SimpleConnectionPool], config: Optional[DatabaseSettings] = None):
    """
    Context manager for database connections.
    Uses the pool if given, otherwise opens a one-off connection from config.

    Yields:
        psycopg2.connection: Database connection
    """
    conn = None
    try:
        if pool is not None:
            conn = pool.getconn()
        else:
            if config is None:
                raise DatabaseConnectionError("No pool or database settings provided")
            conn = psycopg2.connect(**_connect_kwargs(config))
        yield conn
    except psycopg2.OperationalError as e:
        raise DatabaseConnectionError(details=str(e)) from e
    finally:
        if conn is not None:
            if pool is not None:
                pool.putconn(conn)
            else:
                conn.close()


def check_connection(pool: SimpleConnectionPool) -> bool:
    """
    Test database connection.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        with get_connection(pool) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1")
            cursor.close()
        logger.info("Database connection test successful")
        return True
    except (psycopg2.Error, DatabaseConnectionError) as e:
        logger.error(f"Database connection test failed: {e}")
        return False


def close_connection_pool(pool: Optional[SimpleConnectionPool]) -> None:
    """Close all connections in the pool."""
    if pool is not None:
        pool.closeall()
        logger.info("Database connection pool closed")


__all__ = [
    "create_connection_pool",
    "get_connection",
    "check_connection",
    "close_connection_pool",
]
