"""Compilation of WHERE conjuncts into row predicates."""

from __future__ import annotations

import operator
from typing import Any, Callable, Sequence

from json_tables.expressions import param_value, resolve_literal
from json_tables.parsing.query_parser import (
    Comparison,
    Condition,
    ConstantCondition,
    LowerEquals,
    Now,
    NullCheck,
    Parameter,
)
from json_tables.types import Record, now_millis, to_number, values_equal

RowPredicate = Callable[[Record], bool]

_NUMERIC_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}

_NOW_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    **_NUMERIC_OPERATORS,
    "=": operator.eq,
    "!=": operator.ne,
}


_MISSING = object()


def _ordering_number(value: Any) -> Any:
    # null orders as 0; an absent field or a non-numeric value stays NaN
    if value is None:
        return 0
    return to_number(value)


def compare(left: Any, right: Any, op: str) -> bool:
    """Compare a field value with an operand.

    ``=`` and ``!=`` use strict value equality, with an absent field
    equal to null. Ordering operators coerce both sides to numbers; null
    counts as 0, while an absent field or non-numeric value never matches.
    """
    if left is _MISSING:
        if op in ("=", "!="):
            left = None
        else:
            return False
    if op == "=":
        return values_equal(left, right)
    if op == "!=":
        return not values_equal(left, right)
    # NaN compares false against everything
    return _NUMERIC_OPERATORS[op](_ordering_number(left), _ordering_number(right))


def compile_condition(condition: Condition, params: Sequence[Any]) -> RowPredicate:
    """Compile a single conjunct into a predicate over records."""
    if isinstance(condition, ConstantCondition):
        value = condition.value
        return lambda row: value

    if isinstance(condition, LowerEquals):
        target = param_value(params, condition.param.index)
        wanted = "" if target is None else str(target).strip().lower()
        column = condition.column

        def lower_equals(row: Record) -> bool:
            field = row.get(column)
            text = field.lower().strip() if isinstance(field, str) else ""
            return text == wanted

        return lower_equals

    if isinstance(condition, NullCheck):
        column = condition.column
        if condition.negate:
            return lambda row: row.get(column) is not None
        return lambda row: row.get(column) is None

    if isinstance(condition, Comparison):
        column, op = condition.column, condition.operator
        if isinstance(condition.value, Now):
            compare_now = _NOW_OPERATORS[op]
            return lambda row: compare_now(_ordering_number(row.get(column, _MISSING)), now_millis())
        if isinstance(condition.value, Parameter):
            operand = param_value(params, condition.value.index)
        else:
            operand = resolve_literal(condition.value, params)
        return lambda row: compare(row.get(column, _MISSING), operand, op)

    raise TypeError(f"Unknown condition type: {type(condition).__name__}")


def build_filter(conditions: Sequence[Condition], params: Sequence[Any]) -> RowPredicate:
    """Compile a conjunctive WHERE clause; an empty clause matches every row."""
    predicates = [compile_condition(c, params) for c in conditions]
    return lambda row: all(predicate(row) for predicate in predicates)
