"""
Formula evaluator tests: grammar, cost binding and error reporting.
"""
from decimal import Decimal

import pytest

from autoquote.engine.errors import (
    DivisionByZeroError,
    FormulaSyntaxError,
    MissingCostError,
    PricingArithmeticError,
)
from autoquote.engine.formula import evaluate, parse, references_cost


def test_bare_cost():
    assert evaluate("cost", 10) == 10


def test_markup():
    assert evaluate("cost * 1.2", 10) == 12


def test_fixed_price_ignores_missing_cost():
    """A bare literal is a fixed price and needs no cost."""
    assert evaluate("3.0", None) == Decimal("3.0")
    assert evaluate("3.0", 99) == Decimal("3.0")


def test_division_by_zero():
    with pytest.raises(DivisionByZeroError):
        evaluate("cost / 0", 5)


def test_division_by_zero_expression():
    with pytest.raises(DivisionByZeroError):
        evaluate("cost / (2 - 2)", 5)


def test_overflow_is_a_pricing_error():
    with pytest.raises(PricingArithmeticError) as exc:
        evaluate("cost * 10", Decimal("9E+999999"))
    assert exc.value.code == "ARITHMETIC_ERROR"


def test_missing_cost():
    with pytest.raises(MissingCostError):
        evaluate("cost", None)


def test_missing_cost_checked_before_division():
    """Missing cost wins even when the formula would also divide by zero."""
    with pytest.raises(MissingCostError):
        evaluate("cost / 0", None)


def test_precedence_and_parentheses():
    assert evaluate("1 + 2 * 3", None) == 7
    assert evaluate("(1 + 2) * 3", None) == 9
    assert evaluate("(cost + 0.5) * 2", 1) == 3
    assert evaluate("10 - 4 - 3", None) == 3
    assert evaluate("24 / 4 / 2", None) == 3


def test_unary_minus():
    assert evaluate("-cost + 5", 2) == 3
    assert evaluate("cost * -1", 2) == -2
    assert evaluate("--2", None) == 2


def test_decimal_semantics():
    """No binary float drift: 0.1 + 0.2 is exactly 0.3."""
    assert evaluate("0.1 + 0.2", None) == Decimal("0.3")
    assert evaluate("cost * 3", 1.1) == Decimal("3.3")


def test_leading_dot_literal():
    assert evaluate(".5 * cost", 4) == 2


def test_cost_is_case_insensitive():
    assert evaluate("Cost * 2", 3) == 6


def test_whitespace_is_ignored():
    assert evaluate("  cost*1.5  ", 2) == 3


def test_references_cost():
    assert references_cost("cost * 1.2")
    assert not references_cost("3.0")


def test_parse_is_cached():
    assert parse("cost * 1.2") is parse("cost * 1.2")


@pytest.mark.parametrize("formula,position", [
    ("", 0),
    ("   ", 3),
    ("cost *", 6),
    ("cost * * 2", 7),
    ("(cost + 1", 9),
    ("cost + 1)", 8),
    ("price * 0.9", 0),
    ("cost % 2", 5),
    ("1.2.3", 3),
    ("max(cost, 1)", 0),
    ("cost > 1", 5),
])
def test_syntax_errors_report_position(formula, position):
    with pytest.raises(FormulaSyntaxError) as exc_info:
        evaluate(formula, 1)
    assert exc_info.value.position == position, \
        f"Expected error at {position} for '{formula}', got {exc_info.value.position}"


def test_syntax_error_message_names_token():
    with pytest.raises(FormulaSyntaxError) as exc_info:
        evaluate("price * 0.9", 1)
    assert "price" in exc_info.value.message
    assert exc_info.value.to_dict()["error"]["code"] == "FORMULA_SYNTAX"
