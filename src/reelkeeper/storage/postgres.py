"""Postgres-backed key-value storage for Reelkeeper."""

from typing import Optional

import psycopg2
import psycopg2.extensions

from reelkeeper.errors import PersistenceError
from reelkeeper.storage.kv import KeyValueStore
from reelkeeper.utils.logging import get_logger

logger = get_logger(__name__)

TABLE_NAME = "reelkeeper_kv"

SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""


class PostgresKeyValueStore(KeyValueStore):
    """Key-value store kept in a single Postgres table."""

    def __init__(self, postgres_conn: psycopg2.extensions.connection):
        """Initialize storage.

        Args:
            postgres_conn: Postgres connection (owned by this store once passed in)
        """
        self.conn = postgres_conn

    def ensure_schema(self) -> None:
        """Create the key-value table if it does not exist.

        Raises:
            PersistenceError: If the DDL fails
        """
        try:
            with self.conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
            self.conn.commit()
        except psycopg2.Error as e:
            self.conn.rollback()
            logger.error(f"Failed to create {TABLE_NAME}: {e}")
            raise PersistenceError(f"Cannot create {TABLE_NAME}: {e}") from e
        logger.info(f"Ensured table {TABLE_NAME}")

    def get(self, key: str) -> Optional[str]:
        try:
            with self.conn.cursor() as cur:
                cur.execute(
                    f"SELECT value FROM {TABLE_NAME} WHERE key = %s",
                    (key,),
                )
                row = cur.fetchone()
            # Close the implicit read transaction
            self.conn.commit()
        except psycopg2.Error as e:
            self.conn.rollback()
            logger.error(f"Failed to read {key}: {e}")
            raise PersistenceError(f"Cannot read {key}: {e}") from e

        if not row:
            return None
        value: str = row[0]
        return value

    def set(self, key: str, value: str) -> None:
        try:
            with self.conn.cursor() as cur:
                cur.execute(
                    f"""
                    INSERT INTO {TABLE_NAME} (key, value)
                    VALUES (%s, %s)
                    ON CONFLICT (key) DO UPDATE SET
                        value = EXCLUDED.value,
                        updated_at = NOW()
                    """,
                    (key, value),
                )
            self.conn.commit()
        except psycopg2.Error as e:
            self.conn.rollback()
            logger.error(f"Failed to write {key}: {e}")
            raise PersistenceError(f"Cannot write {key}: {e}") from e
        logger.debug(f"Stored {key} ({len(value)} chars)")

    def delete(self, key: str) -> None:
        try:
            with self.conn.cursor() as cur:
                cur.execute(f"DELETE FROM {TABLE_NAME} WHERE key = %s", (key,))
            self.conn.commit()
        except psycopg2.Error as e:
            self.conn.rollback()
            logger.error(f"Failed to delete {key}: {e}")
            raise PersistenceError(f"Cannot delete {key}: {e}") from e

    def close(self) -> None:
        self.conn.close()
        logger.info("Closed Postgres connection")
