"""Table store backed by a single JSON snapshot file."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

import structlog

from json_tables.flush import FlushScheduler
from json_tables.schema import TABLE_META, get_meta
from json_tables.types import Record, is_nan, normalize_number, to_number

logger = structlog.get_logger()


class TableStore:
    """Owns every table and auto-increment counter for one backing file.

    The snapshot layout is ``{"tables": {name: [record, ...]}, "autoIds": {name: int}}``.
    Construction loads the snapshot, so every known table exists as soon
    as the store does.
    """

    def __init__(self, file_path: Path | str, flush_delay: float = 0.2) -> None:
        """Initialize the store and load the snapshot.

        Args:
            file_path: Path of the backing JSON file.
            flush_delay: Debounce window in seconds for scheduled saves.
        """
        self.file_path = Path(file_path)
        self.tables: dict[str, list[Record]] = {}
        self.auto_ids: dict[str, int] = {}
        self.scheduler = FlushScheduler(self._on_flush, flush_delay)
        self.load()

    def load(self) -> None:
        """Load the snapshot file, resetting to an empty store if it is unreadable."""
        self.tables = {}
        self.auto_ids = {}

        if self.file_path.exists():
            try:
                parsed = json.loads(self.file_path.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
                logger.error("snapshot_load_failed", path=str(self.file_path), error=str(e))
                parsed = None

            if isinstance(parsed, dict):
                tables = parsed.get("tables")
                auto_ids = parsed.get("autoIds")
                self.tables = tables if isinstance(tables, dict) else {}
                self.auto_ids = auto_ids if isinstance(auto_ids, dict) else {}
            elif parsed is not None:
                logger.error("snapshot_invalid", path=str(self.file_path), reason="not an object")

        for name, rows in list(self.tables.items()):
            if not isinstance(rows, list):
                logger.error("snapshot_invalid", path=str(self.file_path), table=name, reason="not a list")
                self.tables[name] = []
                continue
            records = [row for row in rows if isinstance(row, dict)]
            if len(records) != len(rows):
                logger.error(
                    "snapshot_invalid",
                    path=str(self.file_path),
                    table=name,
                    reason="non-object rows dropped",
                    dropped=len(rows) - len(records),
                )
                self.tables[name] = records

        for name, meta in TABLE_META.items():
            if not isinstance(self.tables.get(name), list):
                self.tables[name] = []
            if meta.auto_increment:
                current_max = max(
                    (self._numeric_id(row.get(meta.id_column)) for row in self.tables[name]),
                    default=0,
                )
                self.auto_ids[name] = max(self._numeric_id(self.auto_ids.get(name)), current_max, 0)

    def _on_flush(self) -> None:
        self.save()

    @staticmethod
    def _numeric_id(value: Any) -> int | float:
        number = to_number(value, default=0)
        if is_nan(number):
            return 0
        return normalize_number(number)

    # --- Table access ---

    def has_table(self, name: str) -> bool:
        """Return whether a table exists."""
        return name in self.tables

    def rows(self, name: str) -> list[Record]:
        """Return the records of a table, or an empty list if it does not exist."""
        return self.tables.get(name, [])

    def ensure_table(self, name: str) -> list[Record]:
        """Get a table, creating it empty if it does not exist."""
        table = self.tables.get(name)
        if table is None:
            table = []
            self.tables[name] = table
        return table

    def replace_table(self, name: str, rows: list[Record]) -> None:
        """Replace a table's records wholesale."""
        self.tables[name] = rows

    # --- Id generation ---

    def allocate_id(self, table: str, explicit: Any = None) -> Any:
        """Assign the auto-increment id for a new record.

        With no explicit value the counter is incremented and returned.
        With an explicit value the counter advances to at least that value
        and the explicit value is returned unchanged.
        """
        current = self._numeric_id(self.auto_ids.get(table))
        if explicit is None:
            current += 1
            self.auto_ids[table] = current
            return current
        self.auto_ids[table] = max(current, self._numeric_id(explicit))
        return explicit

    def uses_auto_increment(self, table: str) -> bool:
        """Return whether a table generates its own ids."""
        meta = get_meta(table)
        return meta is not None and meta.auto_increment

    # --- Persistence ---

    def snapshot(self) -> dict[str, Any]:
        """Return the serializable snapshot of the whole store."""
        return {"tables": self.tables, "autoIds": self.auto_ids}

    def schedule_save(self) -> None:
        """Arrange a debounced save of the current state."""
        self.scheduler.schedule()

    def save(self) -> None:
        """Write the full snapshot to the backing file.

        Failures are logged and leave the in-memory state as it was.
        """
        try:
            payload = json.dumps(self.snapshot(), indent=2, ensure_ascii=False)
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.file_path.parent, prefix=f".{self.file_path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_name, self.file_path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as e:
            logger.error("snapshot_save_failed", path=str(self.file_path), error=str(e))
            return
        logger.debug("snapshot_saved", path=str(self.file_path), bytes=len(payload))

    def flush(self) -> None:
        """Save immediately, cancelling any pending debounced save."""
        self.scheduler.flush()

    def file_size(self) -> int:
        """Size of the backing file on disk in bytes (0 if absent)."""
        try:
            return self.file_path.stat().st_size
        except FileNotFoundError:
            return 0

    def close(self) -> None:
        """Write out a pending save, if any."""
        if self.scheduler.pending:
            self.scheduler.flush()

    def __enter__(self) -> TableStore:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
