"""Parser for the supported SQL dialect."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

import ply.yacc as yacc

from json_tables.errors import SqlSyntaxError
from json_tables.parsing.query_lexer import QueryLexer


# --- Expressions ---


def _render_literal(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    return str(value)


@dataclass
class Parameter:
    """A positional parameter reference: $1, $2, ..."""

    index: int  # 1-based, as written in the statement

    def sql(self) -> str:
        return f"${self.index}"


@dataclass
class Literal:
    """A string, number, boolean or null literal."""

    value: Any

    def sql(self) -> str:
        return _render_literal(self.value)


@dataclass
class ArrayLiteral:
    """An ARRAY[...] constructor."""

    items: list[Expr] = field(default_factory=list)

    def sql(self) -> str:
        return "ARRAY[" + ", ".join(item.sql() for item in self.items) + "]"


@dataclass
class Now:
    """NOW() or CURRENT_TIMESTAMP."""

    def sql(self) -> str:
        return "NOW()"


@dataclass
class ColumnRef:
    """A field reference, optionally qualified with a table name."""

    name: str
    qualifier: str | None = None

    def sql(self) -> str:
        return self.name


@dataclass
class FunctionCall:
    """A function call such as COALESCE(a, b) or COUNT(*)."""

    name: str  # lowercased
    args: list[Expr] = field(default_factory=list)
    star: bool = False

    def sql(self) -> str:
        inner = "*" if self.star else ", ".join(arg.sql() for arg in self.args)
        return f"{self.name.upper()}({inner})"


@dataclass
class BinaryOp:
    """An arithmetic expression: left + right or left - right."""

    operator: str
    left: Expr
    right: Expr

    def sql(self) -> str:
        return f"{self.left.sql()} {self.operator} {self.right.sql()}"


@dataclass
class Negate:
    """Unary minus."""

    operand: Expr

    def sql(self) -> str:
        return f"-{self.operand.sql()}"


@dataclass
class Cast:
    """A PostgreSQL style cast: expr::type."""

    expr: Expr
    type_name: str

    def sql(self) -> str:
        return f"{self.expr.sql()}::{self.type_name}"


Expr = Union[Parameter, Literal, ArrayLiteral, Now, ColumnRef, FunctionCall, BinaryOp, Negate, Cast]


# --- WHERE conjuncts ---


@dataclass
class ConstantCondition:
    """A condition between two integer literals, such as 1=1."""

    value: bool


@dataclass
class LowerEquals:
    """LOWER(column) = $n, compared case-insensitively."""

    column: str
    param: Parameter


@dataclass
class NullCheck:
    """column IS NULL, or column IS NOT NULL when negate is set."""

    column: str
    negate: bool = False


@dataclass
class Comparison:
    """column <op> value, where value is a parameter, literal or NOW()."""

    column: str
    operator: str  # =, !=, <, <=, >, >=
    value: Parameter | Literal | Now


Condition = Union[ConstantCondition, LowerEquals, NullCheck, Comparison]


# --- Statements ---


@dataclass
class ColumnDef:
    """A column definition in CREATE TABLE or ALTER TABLE ADD COLUMN."""

    name: str
    type_name: str
    default: Expr | None = None
    constraints: list[str] = field(default_factory=list)


@dataclass
class Assignment:
    """column = expr inside a SET clause."""

    column: str
    value: Expr


@dataclass
class ConflictClause:
    """ON CONFLICT [(target)] DO NOTHING | DO UPDATE SET ..."""

    target: list[str] | None = None
    action: str = "nothing"  # nothing, update
    assignments: list[Assignment] = field(default_factory=list)


@dataclass
class VacuumStatement:
    """VACUUM FULL: flush the store to disk."""

    full: bool = True


@dataclass
class CreateTableStatement:
    """CREATE TABLE IF NOT EXISTS name [(columns)]."""

    table: str
    columns: list[ColumnDef] = field(default_factory=list)
    primary_key: list[str] = field(default_factory=list)


@dataclass
class AlterTableStatement:
    """ALTER TABLE name ADD COLUMN IF NOT EXISTS column type [constraints]."""

    table: str
    column: ColumnDef


@dataclass
class InsertStatement:
    """INSERT INTO table (columns) VALUES (exprs) [ON CONFLICT ...] [RETURNING ...]."""

    table: str
    columns: list[str]
    values: list[Expr]
    on_conflict: ConflictClause | None = None
    returning: list[str] | None = None  # ["*"] for RETURNING *


@dataclass
class UpdateStatement:
    """UPDATE table SET assignments WHERE conditions [RETURNING ...]."""

    table: str
    assignments: list[Assignment]
    where: list[Condition]
    returning: list[str] | None = None


@dataclass
class DeleteStatement:
    """DELETE FROM table WHERE conditions."""

    table: str
    where: list[Condition]


@dataclass
class SelectItem:
    """One projection term in a SELECT list."""

    expr: Expr
    alias: str | None = None


@dataclass
class OrderBy:
    """ORDER BY column [ASC|DESC]."""

    column: str
    descending: bool = False


@dataclass
class SelectStatement:
    """SELECT items FROM table [WHERE ...] [ORDER BY ...] [LIMIT n]."""

    table: str
    items: list[SelectItem] = field(default_factory=list)  # empty means *
    where: list[Condition] = field(default_factory=list)
    order_by: OrderBy | None = None
    limit: int | Parameter | None = None

    @property
    def is_star(self) -> bool:
        return not self.items


Statement = Union[
    VacuumStatement,
    CreateTableStatement,
    AlterTableStatement,
    InsertStatement,
    UpdateStatement,
    DeleteStatement,
    SelectStatement,
]


class StatementKind(Enum):
    """Statement classes recognized by their leading keywords."""

    VACUUM = "vacuum"
    CREATE_TABLE = "create_table"
    ALTER_TABLE = "alter_table"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    SELECT = "select"
    UNSUPPORTED = "unsupported"

    @property
    def is_write(self) -> bool:
        """Return whether statements of this kind mutate rows."""
        return self in (StatementKind.INSERT, StatementKind.UPDATE, StatementKind.DELETE)


_LEADING_KEYWORDS: list[tuple[re.Pattern[str], StatementKind]] = [
    (re.compile(r"^VACUUM\s+FULL\b", re.IGNORECASE), StatementKind.VACUUM),
    (re.compile(r"^CREATE\s+TABLE\b", re.IGNORECASE), StatementKind.CREATE_TABLE),
    (re.compile(r"^ALTER\s+TABLE\b", re.IGNORECASE), StatementKind.ALTER_TABLE),
    (re.compile(r"^INSERT\s+INTO\b", re.IGNORECASE), StatementKind.INSERT),
    (re.compile(r"^UPDATE\b", re.IGNORECASE), StatementKind.UPDATE),
    (re.compile(r"^DELETE\s+FROM\b", re.IGNORECASE), StatementKind.DELETE),
    (re.compile(r"^SELECT\b", re.IGNORECASE), StatementKind.SELECT),
]


def classify_statement(sql: str) -> StatementKind:
    """Classify a statement by its leading keyword(s), ignoring case and whitespace."""
    text = sql.strip()
    for pattern, kind in _LEADING_KEYWORDS:
        if pattern.match(text):
            return kind
    return StatementKind.UNSUPPORTED


class QueryParser:
    """Parser for SQL statements."""

    tokens = QueryLexer.tokens

    # Operator precedence
    precedence = (
        ("left", "PLUS", "MINUS"),
        ("right", "UMINUS"),
        ("left", "CAST"),
    )

    def __init__(self) -> None:
        self.lexer = QueryLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore

    def p_statement(self, p: yacc.YaccProduction) -> None:
        """statement : query SEMICOLON
                     | query"""
        p[0] = p[1]

    def p_query(self, p: yacc.YaccProduction) -> None:
        """query : vacuum
                 | create_table
                 | alter_table
                 | insert
                 | update
                 | delete
                 | select"""
        p[0] = p[1]

    # --- VACUUM ---

    def p_vacuum(self, p: yacc.YaccProduction) -> None:
        """vacuum : VACUUM FULL"""
        p[0] = VacuumStatement(full=True)

    # --- CREATE TABLE / ALTER TABLE ---

    def p_create_table(self, p: yacc.YaccProduction) -> None:
        """create_table : CREATE TABLE IF NOT EXISTS IDENTIFIER"""
        p[0] = CreateTableStatement(table=p[6])

    def p_create_table_columns(self, p: yacc.YaccProduction) -> None:
        """create_table : CREATE TABLE IF NOT EXISTS IDENTIFIER LPAREN table_element_list RPAREN"""
        columns = [e for e in p[8] if isinstance(e, ColumnDef)]
        primary_key = [c.name for c in columns if "primary key" in c.constraints]
        for element in p[8]:
            if isinstance(element, list):
                primary_key = element
        p[0] = CreateTableStatement(table=p[6], columns=columns, primary_key=primary_key)

    def p_table_element_list_single(self, p: yacc.YaccProduction) -> None:
        """table_element_list : table_element"""
        p[0] = [p[1]]

    def p_table_element_list_multiple(self, p: yacc.YaccProduction) -> None:
        """table_element_list : table_element_list COMMA table_element"""
        p[0] = p[1] + [p[3]]

    def p_table_element_column(self, p: yacc.YaccProduction) -> None:
        """table_element : column_def"""
        p[0] = p[1]

    def p_table_element_primary_key(self, p: yacc.YaccProduction) -> None:
        """table_element : PRIMARY KEY LPAREN identifier_list RPAREN"""
        p[0] = p[4]

    def p_alter_table(self, p: yacc.YaccProduction) -> None:
        """alter_table : ALTER TABLE IDENTIFIER ADD COLUMN IF NOT EXISTS column_def"""
        p[0] = AlterTableStatement(table=p[3], column=p[9])

    def p_column_def(self, p: yacc.YaccProduction) -> None:
        """column_def : IDENTIFIER type_name column_constraints"""
        default: Expr | None = None
        constraints: list[str] = []
        for kind, value in p[3]:
            if kind == "default":
                default = value
            else:
                constraints.append(kind)
        p[0] = ColumnDef(name=p[1], type_name=p[2], default=default, constraints=constraints)

    def p_type_name(self, p: yacc.YaccProduction) -> None:
        """type_name : IDENTIFIER
                     | IDENTIFIER LBRACKET RBRACKET
                     | IDENTIFIER LPAREN INTEGER RPAREN"""
        if len(p) == 2:
            p[0] = p[1].upper()
        elif len(p) == 4:
            p[0] = p[1].upper() + "[]"
        else:
            p[0] = f"{p[1].upper()}({p[3]})"

    def p_column_constraints_empty(self, p: yacc.YaccProduction) -> None:
        """column_constraints : """
        p[0] = []

    def p_column_constraints(self, p: yacc.YaccProduction) -> None:
        """column_constraints : column_constraints column_constraint"""
        p[0] = p[1] + [p[2]]

    def p_column_constraint_default(self, p: yacc.YaccProduction) -> None:
        """column_constraint : DEFAULT expr"""
        p[0] = ("default", p[2])

    def p_column_constraint_not_null(self, p: yacc.YaccProduction) -> None:
        """column_constraint : NOT NULL"""
        p[0] = ("not null", None)

    def p_column_constraint_null(self, p: yacc.YaccProduction) -> None:
        """column_constraint : NULL"""
        p[0] = ("null", None)

    def p_column_constraint_unique(self, p: yacc.YaccProduction) -> None:
        """column_constraint : UNIQUE"""
        p[0] = ("unique", None)

    def p_column_constraint_primary_key(self, p: yacc.YaccProduction) -> None:
        """column_constraint : PRIMARY KEY"""
        p[0] = ("primary key", None)

    # --- INSERT ---

    def p_insert(self, p: yacc.YaccProduction) -> None:
        """insert : INSERT INTO IDENTIFIER LPAREN identifier_list RPAREN VALUES LPAREN expr_list RPAREN conflict_clause returning_clause"""
        columns, values = p[5], p[9]
        if len(columns) != len(values):
            raise SqlSyntaxError(
                f"INSERT has {len(columns)} columns but {len(values)} values", p.lexpos(1)
            )
        p[0] = InsertStatement(
            table=p[3],
            columns=columns,
            values=values,
            on_conflict=p[11],
            returning=p[12],
        )

    def p_conflict_clause_empty(self, p: yacc.YaccProduction) -> None:
        """conflict_clause : """
        p[0] = None

    def p_conflict_clause_nothing(self, p: yacc.YaccProduction) -> None:
        """conflict_clause : ON CONFLICT conflict_target DO NOTHING"""
        p[0] = ConflictClause(target=p[3], action="nothing")

    def p_conflict_clause_update(self, p: yacc.YaccProduction) -> None:
        """conflict_clause : ON CONFLICT conflict_target DO UPDATE SET assignment_list"""
        p[0] = ConflictClause(target=p[3], action="update", assignments=p[7])

    def p_conflict_target_empty(self, p: yacc.YaccProduction) -> None:
        """conflict_target : """
        p[0] = None

    def p_conflict_target(self, p: yacc.YaccProduction) -> None:
        """conflict_target : LPAREN identifier_list RPAREN"""
        p[0] = p[2]

    def p_returning_clause_empty(self, p: yacc.YaccProduction) -> None:
        """returning_clause : """
        p[0] = None

    def p_returning_clause_star(self, p: yacc.YaccProduction) -> None:
        """returning_clause : RETURNING STAR"""
        p[0] = ["*"]

    def p_returning_clause_columns(self, p: yacc.YaccProduction) -> None:
        """returning_clause : RETURNING identifier_list"""
        p[0] = p[2]

    # --- UPDATE / DELETE ---

    def p_update(self, p: yacc.YaccProduction) -> None:
        """update : UPDATE IDENTIFIER SET assignment_list WHERE where_conditions returning_clause"""
        p[0] = UpdateStatement(table=p[2], assignments=p[4], where=p[6], returning=p[7])

    def p_delete(self, p: yacc.YaccProduction) -> None:
        """delete : DELETE FROM IDENTIFIER WHERE where_conditions"""
        p[0] = DeleteStatement(table=p[3], where=p[5])

    def p_assignment_list_single(self, p: yacc.YaccProduction) -> None:
        """assignment_list : assignment"""
        p[0] = [p[1]]

    def p_assignment_list_multiple(self, p: yacc.YaccProduction) -> None:
        """assignment_list : assignment_list COMMA assignment"""
        p[0] = p[1] + [p[3]]

    def p_assignment(self, p: yacc.YaccProduction) -> None:
        """assignment : column_ref EQ expr"""
        p[0] = Assignment(column=p[1].name, value=p[3])

    # --- SELECT ---

    def p_select(self, p: yacc.YaccProduction) -> None:
        """select : SELECT select_list FROM IDENTIFIER where_clause order_clause limit_clause"""
        p[0] = SelectStatement(
            table=p[4],
            items=p[2],
            where=p[5],
            order_by=p[6],
            limit=p[7],
        )

    def p_select_list_star(self, p: yacc.YaccProduction) -> None:
        """select_list : STAR"""
        p[0] = []

    def p_select_list_items(self, p: yacc.YaccProduction) -> None:
        """select_list : select_item_list"""
        p[0] = p[1]

    def p_select_item_list_single(self, p: yacc.YaccProduction) -> None:
        """select_item_list : select_item"""
        p[0] = [p[1]]

    def p_select_item_list_multiple(self, p: yacc.YaccProduction) -> None:
        """select_item_list : select_item_list COMMA select_item"""
        p[0] = p[1] + [p[3]]

    def p_select_item(self, p: yacc.YaccProduction) -> None:
        """select_item : expr
                       | expr AS IDENTIFIER"""
        p[0] = SelectItem(expr=p[1], alias=p[3] if len(p) == 4 else None)

    def p_where_clause_empty(self, p: yacc.YaccProduction) -> None:
        """where_clause : """
        p[0] = []

    def p_where_clause(self, p: yacc.YaccProduction) -> None:
        """where_clause : WHERE where_conditions"""
        p[0] = p[2]

    def p_order_clause_empty(self, p: yacc.YaccProduction) -> None:
        """order_clause : """
        p[0] = None

    def p_order_clause(self, p: yacc.YaccProduction) -> None:
        """order_clause : ORDER BY column_ref
                        | ORDER BY column_ref ASC
                        | ORDER BY column_ref DESC"""
        descending = len(p) == 5 and p[4].upper() == "DESC"
        p[0] = OrderBy(column=p[3].name, descending=descending)

    def p_limit_clause_empty(self, p: yacc.YaccProduction) -> None:
        """limit_clause : """
        p[0] = None

    def p_limit_clause(self, p: yacc.YaccProduction) -> None:
        """limit_clause : LIMIT INTEGER"""
        p[0] = p[2]

    def p_limit_clause_param(self, p: yacc.YaccProduction) -> None:
        """limit_clause : LIMIT PARAM"""
        p[0] = Parameter(index=p[2])

    # --- WHERE conjuncts ---

    def p_where_conditions_single(self, p: yacc.YaccProduction) -> None:
        """where_conditions : condition"""
        p[0] = [p[1]]

    def p_where_conditions_and(self, p: yacc.YaccProduction) -> None:
        """where_conditions : where_conditions AND condition"""
        p[0] = p[1] + [p[3]]

    def p_condition_constant(self, p: yacc.YaccProduction) -> None:
        """condition : INTEGER EQ INTEGER"""
        p[0] = ConstantCondition(value=p[1] == p[3])

    def p_condition_lower(self, p: yacc.YaccProduction) -> None:
        """condition : IDENTIFIER LPAREN column_ref RPAREN EQ PARAM"""
        if p[1].lower() != "lower":
            raise SqlSyntaxError(f"Unsupported function in WHERE: {p[1]}", p.lexpos(1))
        p[0] = LowerEquals(column=p[3].name, param=Parameter(index=p[6]))

    def p_condition_is_null(self, p: yacc.YaccProduction) -> None:
        """condition : column_ref IS NULL"""
        p[0] = NullCheck(column=p[1].name, negate=False)

    def p_condition_is_not_null(self, p: yacc.YaccProduction) -> None:
        """condition : column_ref IS NOT NULL"""
        p[0] = NullCheck(column=p[1].name, negate=True)

    def p_condition_comparison(self, p: yacc.YaccProduction) -> None:
        """condition : column_ref comparison_op condition_value"""
        p[0] = Comparison(column=p[1].name, operator=p[2], value=p[3])

    def p_comparison_op(self, p: yacc.YaccProduction) -> None:
        """comparison_op : EQ
                         | NEQ
                         | LT
                         | LTE
                         | GT
                         | GTE"""
        p[0] = p[1]

    def p_condition_value_param(self, p: yacc.YaccProduction) -> None:
        """condition_value : PARAM"""
        p[0] = Parameter(index=p[1])

    def p_condition_value_literal(self, p: yacc.YaccProduction) -> None:
        """condition_value : STRING
                           | INTEGER
                           | FLOAT"""
        p[0] = Literal(value=p[1])

    def p_condition_value_negative(self, p: yacc.YaccProduction) -> None:
        """condition_value : MINUS INTEGER
                           | MINUS FLOAT"""
        p[0] = Literal(value=-p[2])

    def p_condition_value_keyword(self, p: yacc.YaccProduction) -> None:
        """condition_value : TRUE
                           | FALSE
                           | NULL"""
        p[0] = Literal(value={"true": True, "false": False, "null": None}[p[1].lower()])

    def p_condition_value_now(self, p: yacc.YaccProduction) -> None:
        """condition_value : CURRENT_TIMESTAMP
                           | IDENTIFIER LPAREN RPAREN"""
        if len(p) == 4 and p[1].lower() != "now":
            raise SqlSyntaxError(f"Unsupported function in WHERE: {p[1]}", p.lexpos(1))
        p[0] = Now()

    # --- Expressions ---

    def p_expr_binary(self, p: yacc.YaccProduction) -> None:
        """expr : expr PLUS expr
                | expr MINUS expr"""
        p[0] = BinaryOp(operator=p[2], left=p[1], right=p[3])

    def p_expr_negate(self, p: yacc.YaccProduction) -> None:
        """expr : MINUS expr %prec UMINUS"""
        operand = p[2]
        if isinstance(operand, Literal) and isinstance(operand.value, (int, float)) and not isinstance(operand.value, bool):
            p[0] = Literal(value=-operand.value)
        else:
            p[0] = Negate(operand=operand)

    def p_expr_cast(self, p: yacc.YaccProduction) -> None:
        """expr : expr CAST type_name"""
        p[0] = Cast(expr=p[1], type_name=p[3].lower())

    def p_expr_paren(self, p: yacc.YaccProduction) -> None:
        """expr : LPAREN expr RPAREN"""
        p[0] = p[2]

    def p_expr_param(self, p: yacc.YaccProduction) -> None:
        """expr : PARAM"""
        p[0] = Parameter(index=p[1])

    def p_expr_literal(self, p: yacc.YaccProduction) -> None:
        """expr : STRING
                | INTEGER
                | FLOAT"""
        p[0] = Literal(value=p[1])

    def p_expr_keyword_literal(self, p: yacc.YaccProduction) -> None:
        """expr : TRUE
                | FALSE
                | NULL"""
        p[0] = Literal(value={"true": True, "false": False, "null": None}[p[1].lower()])

    def p_expr_current_timestamp(self, p: yacc.YaccProduction) -> None:
        """expr : CURRENT_TIMESTAMP"""
        p[0] = Now()

    def p_expr_array(self, p: yacc.YaccProduction) -> None:
        """expr : ARRAY LBRACKET expr_list RBRACKET
                | ARRAY LBRACKET RBRACKET"""
        p[0] = ArrayLiteral(items=p[3] if len(p) == 5 else [])

    def p_expr_column(self, p: yacc.YaccProduction) -> None:
        """expr : column_ref"""
        p[0] = p[1]

    def p_expr_function(self, p: yacc.YaccProduction) -> None:
        """expr : IDENTIFIER LPAREN expr_list RPAREN
                | IDENTIFIER LPAREN RPAREN"""
        name = p[1].lower()
        args = p[3] if len(p) == 5 else []
        if name == "now" and not args:
            p[0] = Now()
        else:
            p[0] = FunctionCall(name=name, args=args)

    def p_expr_function_star(self, p: yacc.YaccProduction) -> None:
        """expr : IDENTIFIER LPAREN STAR RPAREN"""
        p[0] = FunctionCall(name=p[1].lower(), star=True)

    def p_expr_list_single(self, p: yacc.YaccProduction) -> None:
        """expr_list : expr"""
        p[0] = [p[1]]

    def p_expr_list_multiple(self, p: yacc.YaccProduction) -> None:
        """expr_list : expr_list COMMA expr"""
        p[0] = p[1] + [p[3]]

    def p_column_ref(self, p: yacc.YaccProduction) -> None:
        """column_ref : IDENTIFIER"""
        p[0] = ColumnRef(name=p[1])

    def p_column_ref_qualified(self, p: yacc.YaccProduction) -> None:
        """column_ref : IDENTIFIER DOT IDENTIFIER"""
        p[0] = ColumnRef(name=p[3], qualifier=p[1])

    def p_identifier_list_single(self, p: yacc.YaccProduction) -> None:
        """identifier_list : IDENTIFIER"""
        p[0] = [p[1]]

    def p_identifier_list_multiple(self, p: yacc.YaccProduction) -> None:
        """identifier_list : identifier_list COMMA IDENTIFIER"""
        p[0] = p[1] + [p[3]]

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SqlSyntaxError(f"Syntax error at '{p.value}' (position {p.lexpos})", p.lexpos)
        else:
            raise SqlSyntaxError("Syntax error at end of input")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, start="statement", **kwargs)

    def parse(self, data: str) -> Statement:
        """Parse a single SQL statement."""
        if self.parser is None:
            self.build(debug=False, write_tables=False)

        statement = self.parser.parse(data, lexer=self.lexer.lexer)
        if statement is None:
            raise SqlSyntaxError("Empty statement")
        return statement
