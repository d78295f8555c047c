"""Tests for literal resolution and SET expression evaluation."""

import re

import pytest

from json_tables.errors import ParameterError
from json_tables.expressions import apply_cast, evaluate, param_value, resolve_literal
from json_tables.parsing.query_parser import ColumnRef, FunctionCall, Literal, Parameter, QueryParser

ISO_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")


@pytest.fixture
def expr():
    """Parse the right-hand side of a SET assignment."""
    parser = QueryParser()

    def parse_expr(text):
        stmt = parser.parse(f"UPDATE t SET x = {text} WHERE 1=1")
        return stmt.assignments[0].value

    return parse_expr


class TestResolveLiteral:
    """Tests for context-free value resolution."""

    def test_parameters_are_one_based(self):
        assert resolve_literal(Parameter(1), ["a", "b"]) == "a"
        assert resolve_literal(Parameter(2), ["a", "b"]) == "b"

    def test_missing_parameter(self):
        with pytest.raises(ParameterError):
            param_value(["a"], 2)
        with pytest.raises(ParameterError):
            param_value([], 0)

    def test_literals(self, expr):
        assert resolve_literal(expr("'it''s'")) == "it's"
        assert resolve_literal(expr("42")) == 42
        assert resolve_literal(expr("4.5")) == 4.5
        assert resolve_literal(expr("TRUE")) is True
        assert resolve_literal(expr("false")) is False
        assert resolve_literal(expr("NULL")) is None

    def test_array(self, expr):
        assert resolve_literal(expr("ARRAY['/', '.', '#']")) == ["/", ".", "#"]
        assert resolve_literal(expr("ARRAY[]")) == []
        assert resolve_literal(expr("ARRAY[$1, 2]"), ["x"]) == ["x", 2]

    def test_now(self, expr):
        assert ISO_RE.match(resolve_literal(expr("NOW()")))
        assert ISO_RE.match(resolve_literal(expr("CURRENT_TIMESTAMP")))

    def test_fallback_is_raw_text(self, expr):
        assert resolve_literal(ColumnRef("novato")) == "novato"
        assert resolve_literal(FunctionCall("gen_random_uuid")) == "GEN_RANDOM_UUID()"

    def test_literal_values_are_copied(self):
        literal = Literal(["a"])
        value = resolve_literal(literal)
        value.append("b")
        assert literal.value == ["a"]


class TestEvaluate:
    """Tests for expressions evaluated against a record."""

    def test_field_reference(self, expr):
        assert evaluate(expr("money"), {"money": 7}) == 7
        assert evaluate(expr("usuarios.money"), {"money": 7}) == 7
        assert evaluate(expr("missing"), {}) is None

    def test_addition_and_subtraction(self, expr):
        row = {"money": 100, "exp": "20"}
        assert evaluate(expr("money + $1"), row, [50]) == 150
        assert evaluate(expr("money - 30"), row) == 70
        assert evaluate(expr("exp + 5"), row) == 25
        assert evaluate(expr("money + 0.5"), row) == 100.5

    def test_arithmetic_on_missing_field_starts_at_zero(self, expr):
        assert evaluate(expr("count + 1"), {}) == 1
        assert evaluate(expr("warn + $1"), {"warn": None}, [2]) == 2

    def test_greatest(self, expr):
        assert evaluate(expr("GREATEST(money - $1, 0)"), {"money": 10}, [25]) == 0
        assert evaluate(expr("GREATEST(money, $1)"), {"money": 10}, [5]) == 10
        assert evaluate(expr("GREATEST(a, b)"), {"a": None, "b": 3}) == 3
        assert evaluate(expr("GREATEST(a, b)"), {}) is None

    def test_coalesce(self, expr):
        assert evaluate(expr("COALESCE(nombre, 'anon')"), {}) == "anon"
        assert evaluate(expr("COALESCE(nombre, 'anon')"), {"nombre": "Ana"}) == "Ana"
        assert evaluate(expr("COALESCE($1, money)"), {"money": 3}, [None]) == 3

    def test_excluded_reads_proposed_row(self, expr):
        existing = {"count": 4}
        proposed = {"count": 1}
        assert evaluate(expr("EXCLUDED.count"), existing, excluded=proposed) == 1
        assert evaluate(expr("stats.count + EXCLUDED.count"), existing, excluded=proposed) == 5

    def test_negation(self, expr):
        assert evaluate(expr("-money"), {"money": 4}) == -4
        assert evaluate(expr("-5"), {}) == -5

    def test_casts(self, expr):
        assert evaluate(expr("$1::int"), {}, ["42"]) == 42
        assert evaluate(expr("3.6::integer"), {}) == 4
        assert evaluate(expr("money::text"), {"money": 12}) == "12"
        assert evaluate(expr("flag::text"), {"flag": True}) == "true"
        assert evaluate(expr("'yes'::boolean"), {}) is True
        assert evaluate(expr("missing::int"), {}) is None

    def test_unknown_function_falls_back_to_text(self, expr):
        assert evaluate(expr("md5(nombre)"), {"nombre": "a"}) == "MD5(nombre)"


class TestApplyCast:
    """Tests for ::type coercions."""

    def test_int_rounds_half_up(self):
        assert apply_cast(2.5, "int") == 3
        assert apply_cast("7", "bigint") == 7

    def test_unconvertible_int(self):
        assert apply_cast("abc", "int") is None

    def test_unknown_type_passes_through(self):
        assert apply_cast({"a": 1}, "jsonb") == {"a": 1}
        assert apply_cast(["a"], "text[]") == ["a"]
