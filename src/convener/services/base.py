from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Generic, Optional, TypeVar

import aiosqlite

from ..errors import StoreError

T = TypeVar("T")
log = logging.getLogger("convener.base_service")


class BaseService(ABC, Generic[T]):
    """Base class for all SQLite-backed stores."""

    def __init__(self, sqlite_path: str) -> None:
        self._path = str(sqlite_path)
        self._logger = logging.getLogger(f"convener.{self.__class__.__name__.lower()}")

    async def init(self) -> None:
        """Initialize the database schema."""
        async with self._connect() as db:
            await self._create_tables(db)
            await db.commit()

    @asynccontextmanager
    async def _connect(self, *, immediate: bool = False) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection; with ``immediate`` the body runs in a write transaction.

        Any sqlite failure surfaces as StoreError. An open transaction is rolled
        back if the body raises.
        """
        try:
            async with aiosqlite.connect(self._path) as db:
                db.row_factory = aiosqlite.Row
                if immediate:
                    await db.execute("BEGIN IMMEDIATE")
                try:
                    yield db
                except BaseException:
                    if db.in_transaction:
                        await db.rollback()
                    raise
        except aiosqlite.Error as e:
            self._logger.error("SQLite failure in %s: %s", self.__class__.__name__, e)
            raise StoreError(f"{type(e).__name__}: {e}") from e

    @abstractmethod
    async def _create_tables(self, db: aiosqlite.Connection) -> None:
        """Create the necessary database tables."""

    @abstractmethod
    def _from_row(self, row: aiosqlite.Row) -> T:
        """Convert a database row to the service's data type."""

    @property
    @abstractmethod
    def _get_query(self) -> str:
        """SQL query for getting data by key."""

    async def get(self, key: int) -> Optional[T]:
        async with self._connect() as db:
            async with db.execute(self._get_query, (int(key),)) as cur:
                row = await cur.fetchone()
        if row is None:
            return None
        return self._from_row(row)
