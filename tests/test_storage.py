"""Tests for the JSON-backed table store."""

import json
from pathlib import Path

import pytest

from json_tables.schema import KNOWN_TABLES
from json_tables.storage import TableStore


def write_snapshot(path: Path, tables: dict, auto_ids: dict | None = None) -> None:
    path.write_text(json.dumps({"tables": tables, "autoIds": auto_ids or {}}), encoding="utf-8")


class TestLoad:
    """Tests for loading snapshots."""

    def test_missing_file_starts_empty(self, tmp_path):
        """Test that a missing file yields every known table, empty, with zero counters."""
        store = TableStore(tmp_path / "database.json")

        assert set(store.tables) == set(KNOWN_TABLES)
        assert all(rows == [] for rows in store.tables.values())
        assert store.auto_ids == {"characters": 0, "reportes": 0}
        assert not (tmp_path / "database.json").exists()

    def test_load_existing_snapshot(self, tmp_path):
        """Test that stored tables, including ad-hoc ones, are loaded."""
        db_file = tmp_path / "database.json"
        write_snapshot(db_file, {"usuarios": [{"id": "u1", "money": 5}], "notes": [{"text": "hi"}]})

        store = TableStore(db_file)

        assert store.rows("usuarios") == [{"id": "u1", "money": 5}]
        assert store.rows("notes") == [{"text": "hi"}]
        assert store.rows("chats") == []

    def test_counter_raised_to_max_id(self, tmp_path):
        """Test that a counter behind the stored ids catches up on load."""
        db_file = tmp_path / "database.json"
        write_snapshot(
            db_file,
            {"characters": [{"id": 3}, {"id": 7}, {"id": "5"}]},
            {"characters": 2, "reportes": 4},
        )

        store = TableStore(db_file)

        assert store.auto_ids["characters"] == 7
        assert store.auto_ids["reportes"] == 4

    def test_counter_ahead_of_ids_is_kept(self, tmp_path):
        """Test that a counter is never lowered (deleted rows keep their ids used)."""
        db_file = tmp_path / "database.json"
        write_snapshot(db_file, {"characters": [{"id": 2}]}, {"characters": 10})

        store = TableStore(db_file)

        assert store.auto_ids["characters"] == 10

    def test_corrupt_file_resets(self, tmp_path):
        """Test that an unparseable file resets to an empty store."""
        db_file = tmp_path / "database.json"
        db_file.write_text("{not json", encoding="utf-8")

        store = TableStore(db_file)

        assert set(store.tables) == set(KNOWN_TABLES)
        assert store.rows("usuarios") == []

    def test_non_object_rows_are_dropped(self, tmp_path):
        """Test that rows which are not objects are dropped and ids recovered from the rest."""
        db_file = tmp_path / "database.json"
        write_snapshot(
            db_file,
            {"characters": [None, {"id": 3}, 5, ["x"]], "notes": "oops", "usuarios": [{"id": "u1"}]},
        )

        store = TableStore(db_file)

        assert store.rows("characters") == [{"id": 3}]
        assert store.auto_ids["characters"] == 3
        assert store.rows("notes") == []
        assert store.rows("usuarios") == [{"id": "u1"}]

    def test_non_object_snapshot_resets(self, tmp_path):
        db_file = tmp_path / "database.json"
        db_file.write_text("[1, 2, 3]", encoding="utf-8")

        store = TableStore(db_file)

        assert set(store.tables) == set(KNOWN_TABLES)
        assert store.rows("characters") == []

    def test_non_list_table_is_replaced(self, tmp_path):
        """Test that a known table stored as something other than a list is reset."""
        db_file = tmp_path / "database.json"
        write_snapshot(db_file, {"stats": {"command": "menu"}})

        store = TableStore(db_file)

        assert store.rows("stats") == []


class TestTableAccess:
    """Tests for table helpers."""

    def test_ensure_table_creates_once(self, tmp_path):
        store = TableStore(tmp_path / "db.json")

        rows = store.ensure_table("notes")
        rows.append({"a": 1})

        assert store.has_table("notes")
        assert store.ensure_table("notes") == [{"a": 1}]

    def test_rows_of_unknown_table(self, tmp_path):
        store = TableStore(tmp_path / "db.json")

        assert store.rows("nope") == []
        assert not store.has_table("nope")


class TestAllocateId:
    """Tests for auto-increment id allocation."""

    def test_sequential_ids(self, tmp_path):
        store = TableStore(tmp_path / "db.json")

        assert [store.allocate_id("characters") for _ in range(3)] == [1, 2, 3]
        assert store.allocate_id("reportes") == 1

    def test_explicit_id_advances_counter(self, tmp_path):
        store = TableStore(tmp_path / "db.json")

        assert store.allocate_id("characters", 20) == 20
        assert store.allocate_id("characters") == 21

    def test_lower_explicit_id_keeps_counter(self, tmp_path):
        store = TableStore(tmp_path / "db.json")
        store.allocate_id("characters", 20)

        assert store.allocate_id("characters", 5) == 5
        assert store.auto_ids["characters"] == 20

    def test_uses_auto_increment(self, tmp_path):
        store = TableStore(tmp_path / "db.json")

        assert store.uses_auto_increment("characters")
        assert not store.uses_auto_increment("usuarios")
        assert not store.uses_auto_increment("notes")


class TestSave:
    """Tests for writing snapshots."""

    def test_save_round_trip(self, tmp_path):
        """Test that a saved snapshot loads back identically."""
        db_file = tmp_path / "database.json"
        store = TableStore(db_file)
        store.ensure_table("usuarios").append({"id": "u1", "nombre": "Ñandú", "prefix": ["/"]})
        store.allocate_id("characters")

        store.save()

        data = json.loads(db_file.read_text(encoding="utf-8"))
        assert data["tables"]["usuarios"] == [{"id": "u1", "nombre": "Ñandú", "prefix": ["/"]}]
        assert data["autoIds"]["characters"] == 1
        assert TableStore(db_file).tables == store.tables

    def test_save_is_indented(self, tmp_path):
        db_file = tmp_path / "database.json"
        store = TableStore(db_file)

        store.save()

        assert db_file.read_text(encoding="utf-8").startswith('{\n  "tables"')

    def test_save_creates_parent_directory(self, tmp_path):
        db_file = tmp_path / "nested" / "dir" / "database.json"
        store = TableStore(db_file)

        store.save()

        assert db_file.exists()

    def test_save_failure_keeps_memory(self, tmp_path):
        """Test that a failed write is swallowed and leaves state and disk alone."""
        target = tmp_path / "database.json"
        target.mkdir()
        store = TableStore(target)
        store.ensure_table("stats").append({"command": "menu", "count": 1})

        store.save()

        assert store.rows("stats") == [{"command": "menu", "count": 1}]
        assert target.is_dir()
        assert [p for p in tmp_path.iterdir() if p.name.endswith(".tmp")] == []

    def test_file_size(self, tmp_path):
        db_file = tmp_path / "database.json"
        store = TableStore(db_file)
        assert store.file_size() == 0

        store.save()

        assert store.file_size() == db_file.stat().st_size > 0

    def test_schedule_save_without_loop_writes_now(self, tmp_path):
        """Test that outside an event loop a scheduled save happens synchronously."""
        db_file = tmp_path / "database.json"
        store = TableStore(db_file)
        store.ensure_table("stats").append({"command": "menu"})

        store.schedule_save()

        assert json.loads(db_file.read_text(encoding="utf-8"))["tables"]["stats"] == [{"command": "menu"}]
        assert not store.scheduler.pending
