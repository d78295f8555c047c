"""Parsing module for the SQL dialect."""

from json_tables.parsing.query_parser import (
    AlterTableStatement,
    CreateTableStatement,
    DeleteStatement,
    InsertStatement,
    QueryParser,
    SelectStatement,
    Statement,
    StatementKind,
    UpdateStatement,
    VacuumStatement,
    classify_statement,
)

__all__ = [
    "AlterTableStatement",
    "CreateTableStatement",
    "DeleteStatement",
    "InsertStatement",
    "QueryParser",
    "SelectStatement",
    "Statement",
    "StatementKind",
    "UpdateStatement",
    "VacuumStatement",
    "classify_statement",
]
