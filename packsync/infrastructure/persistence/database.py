"""SQLite database lifecycle and async execution for local persistence."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

import peewee
from playhouse.sqlite_ext import SqliteExtDatabase

from packsync.infrastructure.persistence.models import ALL_MODELS, database_proxy

T = TypeVar("T")


@dataclass
class StorageDatabase:
    """Peewee-backed local database.

    Blocking peewee calls run in worker threads through ``asyncio.to_thread``.
    An in-memory database only exists on the connection that created it, so
    ``:memory:`` databases run their operations on the calling thread.

    Attributes:
        path: Path to the SQLite database file, or ":memory:"
    """

    path: str
    _logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))
    _database: SqliteExtDatabase = field(init=False)
    _write_lock: asyncio.Lock = field(init=False)

    def __post_init__(self) -> None:
        if not self.in_memory:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._database = SqliteExtDatabase(
            self.path,
            pragmas={"journal_mode": "wal", "synchronous": "normal"},
            check_same_thread=False,
        )
        database_proxy.initialize(self._database)
        self._write_lock = asyncio.Lock()

    @property
    def in_memory(self) -> bool:
        return self.path == ":memory:"

    @property
    def database(self) -> peewee.SqliteDatabase:
        """Access the underlying Peewee database instance."""
        return self._database

    def migrate(self) -> None:
        """Create tables if they do not exist."""
        if self.in_memory:
            self._database.create_tables(ALL_MODELS, safe=True)
        else:
            with self._database.connection_context():
                self._database.create_tables(ALL_MODELS, safe=True)
        self._logger.info("db_migrated", extra={"path": self.path})

    async def execute(
        self,
        operation: Callable[..., T],
        *args: Any,
        operation_name: str = "database_operation",
        read_only: bool = False,
        **kwargs: Any,
    ) -> T:
        """Run a blocking peewee operation without blocking the event loop.

        Writes are serialized; reads run concurrently.
        """
        try:
            if self.in_memory:
                return operation(*args, **kwargs)

            def _op_wrapper() -> T:
                with self._database.connection_context():
                    return operation(*args, **kwargs)

            if read_only:
                return await asyncio.to_thread(_op_wrapper)
            async with self._write_lock:
                return await asyncio.to_thread(_op_wrapper)
        except peewee.PeeweeException as exc:
            self._logger.exception(
                "db_operation_failed",
                extra={"operation": operation_name, "error": str(exc)},
            )
            raise

    def close(self) -> None:
        if not self._database.is_closed():
            self._database.close()
