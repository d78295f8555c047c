"""Resolution of literals and parameters, and evaluation of SET expressions."""

from __future__ import annotations

import math
from typing import Any, Sequence

from json_tables.errors import ParameterError
from json_tables.parsing.query_parser import (
    ArrayLiteral,
    BinaryOp,
    Cast,
    ColumnRef,
    Expr,
    FunctionCall,
    Literal,
    Negate,
    Now,
    Parameter,
)
from json_tables.types import (
    Record,
    clone_value,
    is_nan,
    normalize_number,
    now_iso,
    to_number,
    to_storable,
)

_INT_TYPES = {"int", "integer", "bigint", "smallint", "int2", "int4", "int8", "serial", "bigserial"}
_TEXT_TYPES = {"text", "varchar", "char", "character", "string"}
_FLOAT_TYPES = {"numeric", "decimal", "real", "float", "float4", "float8", "double"}
_BOOL_TYPES = {"boolean", "bool"}
_TRUE_WORDS = {"true", "t", "yes", "y", "on", "1"}
_FALSE_WORDS = {"false", "f", "no", "n", "off", "0"}


def param_value(params: Sequence[Any], index: int) -> Any:
    """Return the value bound to ``$index`` (1-based)."""
    if index < 1 or index > len(params):
        raise ParameterError(index, len(params))
    return to_storable(params[index - 1])


def resolve_literal(expr: Expr, params: Sequence[Any] = ()) -> Any:
    """Convert a value token to a native value without any row context.

    Parameters, literals, ARRAY[...] and NOW()/CURRENT_TIMESTAMP are
    resolved. Anything else resolves to its SQL text, so an unrecognized
    token such as a bare word comes back as that word.
    """
    if isinstance(expr, Parameter):
        return clone_value(param_value(params, expr.index))
    if isinstance(expr, Literal):
        return clone_value(expr.value)
    if isinstance(expr, ArrayLiteral):
        return [resolve_literal(item, params) for item in expr.items]
    if isinstance(expr, Now):
        return now_iso()
    if isinstance(expr, Negate):
        return _negate(resolve_literal(expr.operand, params))
    if isinstance(expr, Cast):
        return apply_cast(resolve_literal(expr.expr, params), expr.type_name)
    return expr.sql()


def evaluate(
    expr: Expr,
    row: Record,
    params: Sequence[Any] = (),
    excluded: Record | None = None,
) -> Any:
    """Evaluate an expression against the current state of a record.

    Args:
        expr: Parsed expression.
        row: The record as it was before the assignment being evaluated.
        params: Positional statement parameters.
        excluded: The proposed row of an INSERT, reachable as ``EXCLUDED.col``
            inside ON CONFLICT DO UPDATE.
    """
    if isinstance(expr, (Parameter, Literal, Now)):
        return resolve_literal(expr, params)
    if isinstance(expr, ArrayLiteral):
        return [evaluate(item, row, params, excluded) for item in expr.items]
    if isinstance(expr, ColumnRef):
        if excluded is not None and (expr.qualifier or "").lower() == "excluded":
            return clone_value(excluded.get(expr.name))
        return clone_value(row.get(expr.name))
    if isinstance(expr, BinaryOp):
        base = to_number(evaluate(expr.left, row, params, excluded), default=0)
        operand = to_number(evaluate(expr.right, row, params, excluded), default=0)
        result = base + operand if expr.operator == "+" else base - operand
        return None if is_nan(result) else normalize_number(result)
    if isinstance(expr, Negate):
        return _negate(evaluate(expr.operand, row, params, excluded))
    if isinstance(expr, Cast):
        return apply_cast(evaluate(expr.expr, row, params, excluded), expr.type_name)
    if isinstance(expr, FunctionCall):
        return _call(expr, row, params, excluded)
    return expr.sql()


def _call(call: FunctionCall, row: Record, params: Sequence[Any], excluded: Record | None) -> Any:
    args = [evaluate(arg, row, params, excluded) for arg in call.args]

    if call.name == "greatest":
        numbers = [to_number(a, default=None) for a in args]
        numbers = [n for n in numbers if n is not None and not is_nan(n)]
        return normalize_number(max(numbers)) if numbers else None
    if call.name == "coalesce":
        return next((a for a in args if a is not None), None)
    if call.name == "lower" and len(args) == 1:
        return args[0].lower() if isinstance(args[0], str) else args[0]
    if call.name == "upper" and len(args) == 1:
        return args[0].upper() if isinstance(args[0], str) else args[0]
    # Aggregates evaluated on a single row
    if call.name == "count" and call.star:
        return 1
    if call.name == "sum" and len(args) == 1:
        number = to_number(args[0], default=0)
        return 0 if is_nan(number) else normalize_number(number)
    return call.sql()


def _negate(value: Any) -> Any:
    number = to_number(value, default=None)
    if number is None or is_nan(number):
        return None
    return normalize_number(-number)


def apply_cast(value: Any, type_name: str) -> Any:
    """Coerce a value for ``::type``. Unknown types pass the value through."""
    if value is None:
        return None
    base = type_name.lower().split("(")[0]
    if base.endswith("[]"):
        return value
    if base in _INT_TYPES:
        number = to_number(value, default=None)
        if number is None or is_nan(number):
            return None
        return int(math.floor(number + 0.5)) if isinstance(number, float) else number
    if base in _FLOAT_TYPES:
        number = to_number(value, default=None)
        return None if number is None or is_nan(number) else number
    if base in _TEXT_TYPES:
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)
    if base in _BOOL_TYPES:
        if isinstance(value, str):
            word = value.strip().lower()
            if word in _TRUE_WORDS:
                return True
            if word in _FALSE_WORDS:
                return False
            return None
        return bool(value)
    return value
