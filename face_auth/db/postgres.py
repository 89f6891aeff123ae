"""
PostgreSQL Credential Store

Account records live in one table keyed by the store key:

    CREATE TABLE accounts (key TEXT PRIMARY KEY, record JSONB NOT NULL, updated_at TIMESTAMPTZ)

put() is a single upsert, so each write replaces the whole record atomically.
"""

from typing import Optional

import psycopg2
from psycopg2.extras import Json, RealDictCursor
from psycopg2.pool import SimpleConnectionPool

from ..core.config import DatabaseSettings
from ..core.exceptions import DatabaseQueryError
from ..core.logger import get_logger
from .connection import create_connection_pool, get_connection, close_connection_pool
from .store import CredentialStore, DEFAULT_KEY_PREFIX

logger = get_logger(__name__)


class PostgresCredentialStore(CredentialStore):

    def __init__(
        self,
        config: DatabaseSettings,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        pool: Optional[SimpleConnectionPool] = None,
    ):
        super().__init__(key_prefix)
        self.config = config
        self.table_name = config.table_name
        self.pool = pool if pool is not None else create_connection_pool(config)

    def ensure_schema(self) -> None:
        """Create the accounts table if it does not exist."""
        query = f"""
            CREATE TABLE IF NOT EXISTS {self.table_name} (
                key TEXT PRIMARY KEY,
                record JSONB NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """
        self._execute(query, (), commit=True)
        logger.info(f"Ensured table {self.table_name}")

    def _read(self, key: str) -> Optional[dict]:
        query = f"SELECT record FROM {self.table_name} WHERE key = %s"
        row = self._execute(query, (key,), fetch=True)
        return row["record"] if row else None

    def _write(self, key: str, data: dict) -> None:
        query = f"""
            INSERT INTO {self.table_name} (key, record, updated_at)
            VALUES (%s, %s, NOW())
            ON CONFLICT (key) DO UPDATE
            SET record = EXCLUDED.record, updated_at = EXCLUDED.updated_at
        """
        self._execute(query, (key, Json(data)), commit=True)

    def _execute(self, query: str, params: tuple, fetch: bool = False, commit: bool = False):
        with get_connection(self.pool) as conn:
            cursor = conn.cursor(cursor_factory=RealDictCursor)
            try:
                cursor.execute(query, params)
                row = cursor.fetchone() if fetch else None
                if commit:
                    conn.commit()
                return row
            except psycopg2.Error as e:
                conn.rollback()
                logger.error(f"Database error: {e}")
                raise DatabaseQueryError(details=str(e)) from e
            finally:
                cursor.close()

    def close(self) -> None:
        close_connection_pool(self.pool)
        self.pool = None


__all__ = [
    "PostgresCredentialStore",
]
