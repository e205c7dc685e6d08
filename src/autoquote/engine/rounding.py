"""
Rounding Policy - named rounding transforms applied to computed prices.

Stored rules reference policies by name, so registered names are a stable
contract. "round" always means half-up (shop-counter rounding), never
banker's rounding.
"""
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Callable, Optional

from .errors import PricingArithmeticError, UnknownRoundingPolicyError

RoundingFn = Callable[[Decimal], Decimal]

NO_ROUNDING = "none"


def _to_step(step: str, mode: str) -> RoundingFn:
    """Build a policy rounding to a multiple of ``step`` using ``mode``."""
    step_value = Decimal(step)

    def policy(value: Decimal) -> Decimal:
        units = (value / step_value).quantize(Decimal("1"), rounding=mode)
        return units * step_value

    return policy


_REGISTRY: dict[str, RoundingFn] = {
    "floor_to_1": _to_step("1", ROUND_FLOOR),
    "ceil_to_1": _to_step("1", ROUND_CEILING),
    "round_to_1": _to_step("1", ROUND_HALF_UP),
    "floor_to_0.5": _to_step("0.5", ROUND_FLOOR),
    "round_to_0.5": _to_step("0.5", ROUND_HALF_UP),
    "round_to_0.1": _to_step("0.1", ROUND_HALF_UP),
}
_REGISTRY["floor_to_1_yuan"] = _REGISTRY["floor_to_1"]


def names() -> list[str]:
    """List registered policy names (excluding the identity)."""
    return sorted(_REGISTRY)


def is_known(name: Optional[str]) -> bool:
    return not name or name == NO_ROUNDING or name in _REGISTRY


def register(name: str, fn: RoundingFn):
    """Add a policy to the registry. Existing names cannot be replaced."""
    if not name or name == NO_ROUNDING:
        raise ValueError("Rounding policy name must be a non-empty, non-reserved string")
    if name in _REGISTRY:
        raise ValueError(f"Rounding policy '{name}' is already registered")
    _REGISTRY[name] = fn


def get(name: Optional[str]) -> Optional[RoundingFn]:
    """Look up a policy. Returns None for the identity policy."""
    if not name or name == NO_ROUNDING:
        return None
    try:
        return _REGISTRY[name]
    except KeyError:
        raise UnknownRoundingPolicyError(name) from None


def apply(name: Optional[str], value: Decimal) -> Decimal:
    """
    Apply a named rounding policy.

    None, empty and "none" leave the value unchanged.
    Raises UnknownRoundingPolicyError for unregistered names and
    PricingArithmeticError when the value is too large to round.
    """
    fn = get(name)
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if fn is None:
        return value
    try:
        return fn(value)
    except ArithmeticError as e:
        raise PricingArithmeticError(f"rounding '{name}'", type(e).__name__) from e
