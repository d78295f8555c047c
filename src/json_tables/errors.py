"""Exceptions raised by the json_tables library."""

from __future__ import annotations


class JsonTablesError(Exception):
    """Base class for all json_tables errors."""


class SqlSyntaxError(JsonTablesError, ValueError):
    """A statement could not be tokenized or parsed.

    Not a SyntaxError: ply reserves that for error recovery inside grammar actions.
    """

    def __init__(self, message: str, position: int | None = None) -> None:
        super().__init__(message)
        self.position = position


class UnsupportedStatementError(JsonTablesError):
    """A write statement is outside the supported SQL dialect."""

    def __init__(self, kind: str, sql: str) -> None:
        super().__init__(f"Unsupported {kind} statement: {sql}")
        self.kind = kind
        self.sql = sql


class ParameterError(JsonTablesError, IndexError):
    """A positional parameter reference has no matching value."""

    def __init__(self, index: int, count: int) -> None:
        super().__init__(f"Parameter ${index} referenced but only {count} supplied")
        self.index = index
        self.count = count
