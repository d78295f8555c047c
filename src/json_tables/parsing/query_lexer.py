"""Lexer for the supported SQL dialect."""

import ply.lex as lex

from json_tables.errors import SqlSyntaxError


class QueryLexer:
    """Lexer for tokenizing SQL statements."""

    # Reserved keywords (matched case-insensitively)
    reserved = {
        "select": "SELECT",
        "from": "FROM",
        "where": "WHERE",
        "and": "AND",
        "order": "ORDER",
        "by": "BY",
        "asc": "ASC",
        "desc": "DESC",
        "limit": "LIMIT",
        "insert": "INSERT",
        "into": "INTO",
        "values": "VALUES",
        "on": "ON",
        "conflict": "CONFLICT",
        "do": "DO",
        "nothing": "NOTHING",
        "update": "UPDATE",
        "set": "SET",
        "returning": "RETURNING",
        "delete": "DELETE",
        "create": "CREATE",
        "table": "TABLE",
        "if": "IF",
        "not": "NOT",
        "exists": "EXISTS",
        "alter": "ALTER",
        "add": "ADD",
        "column": "COLUMN",
        "default": "DEFAULT",
        "primary": "PRIMARY",
        "key": "KEY",
        "unique": "UNIQUE",
        "null": "NULL",
        "true": "TRUE",
        "false": "FALSE",
        "is": "IS",
        "as": "AS",
        "array": "ARRAY",
        "vacuum": "VACUUM",
        "full": "FULL",
        "current_timestamp": "CURRENT_TIMESTAMP",
    }

    # Token list
    tokens = [
        "PARAM",
        "IDENTIFIER",
        "INTEGER",
        "FLOAT",
        "STRING",
        "STAR",
        "COMMA",
        "DOT",
        "LPAREN",
        "RPAREN",
        "LBRACKET",
        "RBRACKET",
        "EQ",
        "NEQ",
        "LT",
        "LTE",
        "GT",
        "GTE",
        "PLUS",
        "MINUS",
        "CAST",
        "SEMICOLON",
    ] + list(reserved.values())

    # Simple tokens
    t_STAR = r"\*"
    t_COMMA = r","
    t_DOT = r"\."
    t_LPAREN = r"\("
    t_RPAREN = r"\)"
    t_LBRACKET = r"\["
    t_RBRACKET = r"\]"
    t_EQ = r"="
    t_LTE = r"<="
    t_LT = r"<"
    t_GTE = r">="
    t_GT = r">"
    t_PLUS = r"\+"
    t_MINUS = r"-"
    t_CAST = r"::"
    t_SEMICOLON = r";"

    t_ignore = " \t\r"

    def __init__(self) -> None:
        self.lexer: lex.Lexer = None  # type: ignore

    def t_NEQ(self, t: lex.LexToken) -> lex.LexToken:
        r"!=|<>"
        t.value = "!="
        return t

    def t_PARAM(self, t: lex.LexToken) -> lex.LexToken:
        r"\$\d+"
        t.value = int(t.value[1:])
        return t

    def t_FLOAT(self, t: lex.LexToken) -> lex.LexToken:
        r"\d+\.\d+"
        t.value = float(t.value)
        return t

    def t_INTEGER(self, t: lex.LexToken) -> lex.LexToken:
        r"\d+"
        t.value = int(t.value)
        return t

    def t_STRING(self, t: lex.LexToken) -> lex.LexToken:
        r"'(?:[^']|'')*'"
        # Doubled single quotes escape a quote
        t.value = t.value[1:-1].replace("''", "'")
        return t

    def t_QUOTED_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r'"[^"]+"'
        # Always an IDENTIFIER, bypassing keyword lookup
        t.value = t.value[1:-1]
        t.type = "IDENTIFIER"
        return t

    def t_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"[a-zA-Z_][a-zA-Z0-9_]*"
        t.type = self.reserved.get(t.value.lower(), "IDENTIFIER")
        return t

    def t_NEWLINE(self, t: lex.LexToken) -> None:
        r"\n+"
        t.lexer.lineno += len(t.value)

    def t_COMMENT(self, t: lex.LexToken) -> None:
        r"--[^\n]*"
        pass

    def t_error(self, t: lex.LexToken) -> None:
        raise SqlSyntaxError(f"Illegal character '{t.value[0]}' at position {t.lexpos}", t.lexpos)

    # --- Lexer methods ---

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def input(self, data: str) -> None:
        """Set the input string to tokenize."""
        self.lexer.input(data)

    def token(self) -> lex.LexToken | None:
        """Return the next token."""
        return self.lexer.token()

    def tokenize(self, data: str) -> list[lex.LexToken]:
        """Tokenize the input and return all tokens."""
        self.input(data)
        tokens = []
        while True:
            tok = self.token()
            if tok is None:
                break
            tokens.append(tok)
        return tokens

