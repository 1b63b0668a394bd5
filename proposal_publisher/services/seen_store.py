"""
Durable "already processed" markers, keyed by proposal id.

exists() and record() are independent calls with no transaction spanning
them. A crash between a successful publish and record() means the proposal
is seen as new on the next tick; the publisher's existing pull request and
branch checks then turn that retry into a no-op.
"""
import asyncio
from abc import ABC, abstractmethod
from typing import Set

import psycopg2

from proposal_publisher.config.settings import Settings
from proposal_publisher.exceptions import ConfigurationError, SeenStoreError
from proposal_publisher.utils.logger import logger


class SeenStore(ABC):
    """Key -> marker store for processed proposal ids."""

    backend: str = "abstract"

    @abstractmethod
    async def exists(self, proposal_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def record(self, proposal_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def is_empty(self) -> bool:
        """True when no proposal has ever been recorded."""
        raise NotImplementedError


class MemorySeenStore(SeenStore):
    """In-process store. Markers are lost on restart."""

    backend = "memory"

    def __init__(self):
        self._seen: Set[str] = set()
        self._lock = asyncio.Lock()

    async def exists(self, proposal_id: str) -> bool:
        async with self._lock:
            return proposal_id in self._seen

    async def record(self, proposal_id: str) -> None:
        async with self._lock:
            self._seen.add(proposal_id)

    async def is_empty(self) -> bool:
        async with self._lock:
            return not self._seen


class PostgresSeenStore(SeenStore):
    """Markers in a PostgreSQL table, created on first use."""

    backend = "postgresql"

    CREATE_TABLE_SQL = """
        CREATE TABLE IF NOT EXISTS seen_proposals (
            proposal_id TEXT PRIMARY KEY,
            seen_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """
    EXISTS_SQL = "SELECT 1 FROM seen_proposals WHERE proposal_id = %s"
    RECORD_SQL = "INSERT INTO seen_proposals (proposal_id) VALUES (%s) ON CONFLICT DO NOTHING"
    ANY_SQL = "SELECT 1 FROM seen_proposals LIMIT 1"

    def __init__(self, host: str, port: str, database: str, user: str, password: str):
        self._params = {
            "host": host,
            "port": port,
            "database": database,
            "user": user,
            "password": password,
        }
        self._table_ready = False

    def _connect(self):
        return psycopg2.connect(**self._params)

    def _ensure_table(self, conn) -> None:
        if self._table_ready:
            return
        with conn.cursor() as cur:
            cur.execute(self.CREATE_TABLE_SQL)
        conn.commit()
        self._table_ready = True

    def _exists_sync(self, proposal_id: str) -> bool:
        conn = self._connect()
        try:
            self._ensure_table(conn)
            with conn.cursor() as cur:
                cur.execute(self.EXISTS_SQL, (proposal_id,))
                return cur.fetchone() is not None
        finally:
            conn.close()

    def _is_empty_sync(self) -> bool:
        conn = self._connect()
        try:
            self._ensure_table(conn)
            with conn.cursor() as cur:
                cur.execute(self.ANY_SQL)
                return cur.fetchone() is None
        finally:
            conn.close()

    def _record_sync(self, proposal_id: str) -> None:
        conn = self._connect()
        try:
            self._ensure_table(conn)
            with conn.cursor() as cur:
                cur.execute(self.RECORD_SQL, (proposal_id,))
            conn.commit()
        finally:
            conn.close()

    async def exists(self, proposal_id: str) -> bool:
        try:
            return await asyncio.to_thread(self._exists_sync, proposal_id)
        except psycopg2.Error as e:
            logger.error(f"[SeenStore] Lookup failed for {proposal_id}: {e}")
            raise SeenStoreError(f"Lookup failed for {proposal_id}: {e}") from e

    async def record(self, proposal_id: str) -> None:
        try:
            await asyncio.to_thread(self._record_sync, proposal_id)
        except psycopg2.Error as e:
            logger.error(f"[SeenStore] Could not record {proposal_id}: {e}")
            raise SeenStoreError(f"Could not record {proposal_id}: {e}") from e

    async def is_empty(self) -> bool:
        try:
            return await asyncio.to_thread(self._is_empty_sync)
        except psycopg2.Error as e:
            logger.error(f"[SeenStore] Lookup failed: {e}")
            raise SeenStoreError(f"Lookup failed: {e}") from e


def get_seen_store(settings: Settings) -> SeenStore:
    """Return the seen store selected by SEEN_STORE ("memory" or "postgresql")."""
    backend = settings.seen_store
    logger.info(f"[SeenStore] Initializing with backend: {backend}")

    if backend == "postgresql":
        missing = [
            name for name, value in (
                ("DATABASE_HOST", settings.database_host),
                ("DATABASE_NAME", settings.database_name),
                ("DATABASE_USER", settings.database_user),
                ("DATABASE_PASSWORD", settings.database_password),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"Missing database config for seen store: {', '.join(missing)}")
        return PostgresSeenStore(
            host=settings.database_host,
            port=settings.database_port,
            database=settings.database_name,
            user=settings.database_user,
            password=settings.database_password,
        )

    if backend == "memory":
        logger.warning("[SeenStore] Using in-memory store, markers will not survive a restart")
        return MemorySeenStore()

    raise ConfigurationError(f"Unknown SEEN_STORE backend: {backend}")
