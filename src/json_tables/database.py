"""Asynchronous query interface over a JSON-backed table store."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Sequence

import structlog

from json_tables.config import Settings, settings as default_settings
from json_tables.query_executor import QueryExecutor, QueryResult
from json_tables.storage import TableStore

logger = structlog.get_logger()


class Database:
    """A PostgreSQL-flavoured query interface over one JSON snapshot file.

    Every statement runs to completion before its awaitable resolves, so
    statements from concurrent tasks never interleave. Writes are
    persisted by a debounced flush on the running event loop; call
    ``close()`` (or leave an ``async with`` block) before the loop ends
    to write out anything still pending.

    Example:
        async with Database("database.json") as db:
            await db.execute("INSERT INTO stats (command, count) VALUES ($1, 1)", ["menu"])
            result = await db.execute("SELECT * FROM stats")
    """

    def __init__(
        self,
        db_file: Path | str | None = None,
        flush_delay: float | None = None,
        config: Settings | None = None,
    ) -> None:
        config = config or default_settings
        self.store = TableStore(
            db_file if db_file is not None else config.db_file,
            flush_delay if flush_delay is not None else config.flush_delay,
        )
        self.executor = QueryExecutor(self.store, default_memory_ttl=config.default_memory_ttl)

    @property
    def file_path(self) -> Path:
        return self.store.file_path

    async def connect(self) -> Database:
        """Report the loaded store. The snapshot is read at construction."""
        logger.info(
            "database_loaded",
            path=str(self.store.file_path),
            tables=len(self.store.tables),
            rows=sum(len(rows) for rows in self.store.tables.values()),
        )
        return self

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        """Execute one SQL statement with positional ``$n`` parameters."""
        return self.executor.execute(sql, params)

    # Driver-style alias
    query = execute

    def flush(self) -> None:
        """Write the snapshot now, cancelling any pending debounced save."""
        self.store.flush()

    def close(self) -> None:
        """Write out a pending save, if any."""
        self.store.close()

    async def __aenter__(self) -> Database:
        return await self.connect()

    async def __aexit__(self, *args: Any) -> None:
        self.close()
