"""
Rounding policy registry tests.
"""
from decimal import Decimal

import pytest

from autoquote.engine import rounding
from autoquote.engine.errors import PricingArithmeticError, UnknownRoundingPolicyError


def test_floor_to_1_yuan():
    assert rounding.apply("floor_to_1_yuan", Decimal("12.7")) == 12


def test_float_input_is_converted_exactly():
    assert rounding.apply("floor_to_1_yuan", 12.7) == 12


def test_no_policy_is_identity():
    assert rounding.apply(None, Decimal("12.7")) == Decimal("12.7")
    assert rounding.apply("", Decimal("12.7")) == Decimal("12.7")
    assert rounding.apply("none", Decimal("12.7")) == Decimal("12.7")


@pytest.mark.parametrize("name,value,expected", [
    ("floor_to_1", "12.7", "12"),
    ("ceil_to_1", "12.1", "13"),
    ("ceil_to_1", "12", "12"),
    ("round_to_1", "12.5", "13"),
    ("round_to_1", "12.49", "12"),
    ("floor_to_0.5", "12.7", "12.5"),
    ("floor_to_0.5", "12.4", "12"),
    ("round_to_0.5", "12.74", "12.5"),
    ("round_to_0.5", "12.75", "13"),
    ("round_to_0.1", "12.25", "12.3"),
    ("round_to_0.1", "12.24", "12.2"),
])
def test_named_policies(name, value, expected):
    assert rounding.apply(name, Decimal(value)) == Decimal(expected)


def test_round_is_half_up_not_bankers():
    """2.5 rounds to 3, not to the even 2."""
    assert rounding.apply("round_to_1", Decimal("2.5")) == 3


def test_unknown_policy_raises():
    with pytest.raises(UnknownRoundingPolicyError) as exc_info:
        rounding.apply("round_to_7", Decimal("1"))
    assert exc_info.value.name == "round_to_7"


def test_is_known():
    assert rounding.is_known(None)
    assert rounding.is_known("none")
    assert rounding.is_known("round_to_0.5")
    assert not rounding.is_known("round_to_7")


def test_register_new_policy():
    rounding.register("test_ceil_to_10", lambda v: (v / 10).to_integral_value(rounding="ROUND_CEILING") * 10)
    try:
        assert rounding.apply("test_ceil_to_10", Decimal("41")) == 50
        assert "test_ceil_to_10" in rounding.names()
    finally:
        rounding._REGISTRY.pop("test_ceil_to_10", None)


def test_register_rejects_existing_and_reserved_names():
    with pytest.raises(ValueError):
        rounding.register("floor_to_1", lambda v: v)
    with pytest.raises(ValueError):
        rounding.register("none", lambda v: v)


def test_value_too_large_to_round():
    with pytest.raises(PricingArithmeticError):
        rounding.apply("floor_to_1", Decimal("1E+40"))
