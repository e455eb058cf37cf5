"""Postgres-backed response cache."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import psycopg
from psycopg.types.json import Jsonb


logger = logging.getLogger(__name__)

TABLE_NAME = "openapi_connector_cache"


class PostgresCache:
    """Cache handle storing captured responses in a Postgres table.

    Usable as ``cache.model`` directly or through ``define(name, cache)``.
    """

    def __init__(self, database_url: str) -> None:
        self.database_url = database_url
        self._init_db()

    def _connect(self) -> psycopg.Connection:
        return psycopg.connect(self.database_url)

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
                    key TEXT PRIMARY KEY,
                    value JSONB NOT NULL,
                    expires_at TIMESTAMPTZ NOT NULL
                )
                """
            )

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT value FROM {TABLE_NAME} WHERE key = %s AND expires_at > %s",
                (key, _now()),
            ).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: Dict[str, Any], ttl: float) -> None:
        expires_at = _now() + timedelta(seconds=ttl)
        with self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO {TABLE_NAME} (key, value, expires_at)
                VALUES (%s, %s, %s)
                ON CONFLICT (key) DO UPDATE SET
                    value = EXCLUDED.value, expires_at = EXCLUDED.expires_at
                """,
                (key, Jsonb(value), expires_at),
            )

    def purge_expired(self) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                f"DELETE FROM {TABLE_NAME} WHERE expires_at <= %s", (_now(),)
            )
            removed = cursor.rowcount
        logger.info("Purged %d expired cache entries", removed)
        return removed

    def clear(self) -> None:
        with self._connect() as conn:
            conn.execute(f"DELETE FROM {TABLE_NAME}")


def _now() -> datetime:
    return datetime.now(timezone.utc)
