"""JSON Tables - A PostgreSQL-flavoured query layer over a single JSON file."""

from json_tables.database import Database
from json_tables.errors import JsonTablesError, ParameterError, SqlSyntaxError, UnsupportedStatementError
from json_tables.parsing import QueryParser
from json_tables.query_executor import QueryExecutor, QueryResult
from json_tables.storage import TableStore

__all__ = [
    # Main API
    "Database",
    "QueryResult",
    # Engine
    "QueryParser",
    "QueryExecutor",
    "TableStore",
    # Errors
    "JsonTablesError",
    "SqlSyntaxError",
    "UnsupportedStatementError",
    "ParameterError",
]

__version__ = "0.1.0"
