"""Interactive shell for running SQL against a JSON table file."""

from __future__ import annotations

import argparse
import json
import readline  # noqa: F401 - enables line editing in input()
import sys
from pathlib import Path
from typing import Any

from json_tables.bootstrap import bootstrap_statements
from json_tables.config import settings
from json_tables.logging_setup import setup_logging
from json_tables.query_executor import QueryExecutor, QueryResult
from json_tables.storage import TableStore


def _split_statements(content: str) -> list[str]:
    """Split content into statements on semicolons outside string literals.

    A doubled quote inside a literal toggles the state twice, so escaped
    quotes need no special handling. ``--`` comments run to end of line.
    """
    statements = []
    current: list[str] = []
    in_string = False
    i = 0

    while i < len(content):
        ch = content[i]

        if ch == "'":
            in_string = not in_string
            current.append(ch)
        elif in_string:
            current.append(ch)
        elif ch == "-" and content.startswith("--", i):
            end = content.find("\n", i)
            i = len(content) if end == -1 else end
            continue
        elif ch == ";":
            stmt = "".join(current).strip()
            if stmt:
                statements.append(stmt)
            current = []
        else:
            current.append(ch)
        i += 1

    stmt = "".join(current).strip()
    if stmt:
        statements.append(stmt)

    return statements


def format_value(value: Any, max_items: int = 10, max_width: int = 40) -> str:
    """Format a value for display.

    Args:
        value: The value to format
        max_items: Maximum number of array items to show before eliding
        max_width: Maximum character width before truncating
    """
    if value is None:
        return "NULL"
    elif isinstance(value, bool):
        return "true" if value else "false"
    elif isinstance(value, int):
        return str(value)
    elif isinstance(value, float):
        return f"{value:.6g}"
    elif isinstance(value, str):
        if len(value) > max_width:
            return repr(value[:max_width - 3] + "...")
        return repr(value)
    elif isinstance(value, list):
        formatted = []
        for i, v in enumerate(value):
            if i >= max_items:
                formatted.append(f"...+{len(value) - max_items} more")
                break
            formatted.append(format_value(v, max_items, max_width))

        result = "[" + ", ".join(formatted) + "]"
        if len(result) > max_width:
            return result[:max_width - 4] + "...]"
        return result
    else:
        s = json.dumps(value, ensure_ascii=False) if isinstance(value, dict) else str(value)
        if len(s) > max_width:
            return s[:max_width - 3] + "..."
        return s


def print_result(result: QueryResult) -> None:
    """Print query results in a formatted table."""
    if not result.rows:
        print(f"OK ({result.row_count} row{'s' if result.row_count != 1 else ''})")
        return

    columns = result.columns

    # Calculate column widths
    col_widths = {col: len(col) for col in columns}
    for row in result.rows:
        for col in columns:
            col_widths[col] = max(col_widths[col], len(format_value(row.get(col))))

    max_col_width = 40
    for col in col_widths:
        col_widths[col] = min(col_widths[col], max_col_width)

    header = " | ".join(col.ljust(col_widths[col])[:col_widths[col]] for col in columns)
    print(header)
    print("-" * len(header))

    for row in result.rows:
        values = []
        for col in columns:
            val = format_value(row.get(col))
            if len(val) > col_widths[col]:
                val = val[: col_widths[col] - 3] + "..."
            values.append(val.ljust(col_widths[col]))
        print(" | ".join(values))

    print(f"\n({len(result.rows)} row{'s' if len(result.rows) != 1 else ''})")


def print_tables(store: TableStore) -> None:
    """Print every table with its row count."""
    if not store.tables:
        print("(no tables)")
        return
    width = max(len(name) for name in store.tables)
    for name in sorted(store.tables):
        print(f"{name.ljust(width)}  {len(store.tables[name])} rows")


def print_help() -> None:
    """Print help information."""
    print("""
Statements end with ';'. A blank line also runs what has been typed.

SQL:
  SELECT * FROM t [WHERE ...] [ORDER BY col [ASC|DESC]] [LIMIT n]
  INSERT INTO t (cols) VALUES (...) [ON CONFLICT [(cols)] DO ...] [RETURNING ...]
  UPDATE t SET col = expr, ... WHERE ... [RETURNING ...]
  DELETE FROM t WHERE ...
  CREATE TABLE IF NOT EXISTS t (...)
  ALTER TABLE t ADD COLUMN IF NOT EXISTS col type [DEFAULT value]
  VACUUM FULL

WHERE conditions are joined with AND:
  col = 'x'   col > 10   col IS [NOT] NULL   LOWER(col) = $1   col < NOW()

SHELL:
  tables                   List tables and row counts
  init                     Create the bot's tables and columns
  flush                    Write the file now
  help                     Show this help
  exit, quit               Leave the shell
""")


def run_statement(executor: QueryExecutor, sql: str) -> None:
    """Execute one statement and print its result."""
    print_result(executor.execute(sql))


def run_init(executor: QueryExecutor) -> None:
    """Run the bootstrap DDL synchronously."""
    for sql in bootstrap_statements():
        executor.execute(sql)


def run_repl(db_file: Path) -> int:
    """Run the interactive REPL."""
    print("json-tables shell")
    print(f"Database file: {db_file}")
    print("Type 'help' for commands, 'exit' to quit.\n")

    store = TableStore(db_file, settings.flush_delay)
    executor = QueryExecutor(store, default_memory_ttl=settings.default_memory_ttl)

    history_file = Path.home() / ".json_tables_history"
    try:
        readline.read_history_file(history_file)
    except FileNotFoundError:
        pass

    buffer: list[str] = []
    try:
        while True:
            try:
                line = input("...> " if buffer else "sql> ")
            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                print()
                buffer = []
                continue

            stripped = line.strip()
            if not buffer:
                command = stripped.rstrip(";").lower()
                if command in ("exit", "quit"):
                    break
                if command == "help":
                    print_help()
                    continue
                if command == "tables":
                    print_tables(store)
                    continue
                if command == "flush":
                    store.flush()
                    print(f"Wrote {store.file_path}")
                    continue
                if command == "init":
                    run_init(executor)
                    print("Tables initialized")
                    continue
                if not stripped:
                    continue

            if stripped:
                buffer.append(line)
                if not stripped.endswith(";"):
                    continue

            text = "\n".join(buffer)
            buffer = []
            for sql in _split_statements(text):
                try:
                    run_statement(executor, sql)
                except Exception as e:
                    print(f"Error: {e}")
            print()

    finally:
        try:
            readline.set_history_length(1000)
            readline.write_history_file(history_file)
        except OSError:
            pass
        store.close()

    return 0


def run_file(file_path: Path, db_file: Path, verbose: bool = False) -> int:
    """Execute the statements in a file.

    Args:
        file_path: Path to the file containing statements
        db_file: Backing JSON file
        verbose: If True, print each statement before executing

    Returns:
        0 on success, 1 on error
    """
    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as e:
        print(f"Error reading file: {e}", file=sys.stderr)
        return 1

    statements = _split_statements(content)
    if not statements:
        print("No statements found in file", file=sys.stderr)
        return 1

    with TableStore(db_file, settings.flush_delay) as store:
        executor = QueryExecutor(store, default_memory_ttl=settings.default_memory_ttl)
        for sql in statements:
            if verbose:
                print(f"--> {sql}")
            try:
                run_statement(executor, sql)
            except Exception as e:
                print(f"Error: {e}", file=sys.stderr)
                return 1

    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    arg_parser = argparse.ArgumentParser(
        description="Run SQL statements against a JSON table file"
    )
    arg_parser.add_argument(
        "db_file",
        type=Path,
        nargs="?",
        default=None,
        help="Path to the JSON database file (default: JSON_TABLES_DB_FILE or database.json)",
    )
    arg_parser.add_argument(
        "-c", "--command",
        type=str,
        help="Execute a single statement and exit",
    )
    arg_parser.add_argument(
        "-f", "--file",
        type=Path,
        help="Execute statements from a file and exit",
    )
    arg_parser.add_argument(
        "--init",
        action="store_true",
        help="Create the bot's tables and columns before anything else",
    )
    arg_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Print each statement before executing and log at DEBUG level",
    )

    args = arg_parser.parse_args(argv)
    setup_logging(args.verbose or settings.debug)
    db_file = args.db_file or settings.db_file

    if args.init:
        with TableStore(db_file, settings.flush_delay) as store:
            run_init(QueryExecutor(store))

    if args.file:
        if not args.file.exists():
            print(f"Error: File not found: {args.file}", file=sys.stderr)
            return 1
        return run_file(args.file, db_file, args.verbose)

    if args.command:
        try:
            with TableStore(db_file, settings.flush_delay) as store:
                executor = QueryExecutor(store, default_memory_ttl=settings.default_memory_ttl)
                for sql in _split_statements(args.command):
                    run_statement(executor, sql)
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        return 0

    if args.init:
        return 0

    return run_repl(db_file)


if __name__ == "__main__":
    sys.exit(main())
