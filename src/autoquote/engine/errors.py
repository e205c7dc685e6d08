"""
Pricing error taxonomy.

Recoverable errors are raised by the formula evaluator and the rounding
registry; the pricing engine catches them per line and falls back.
NoRuleSnapshotAvailable is the only error the engine lets escape.
"""
from typing import Any, Optional


class PricingError(Exception):
    """
    Base exception for all pricing errors.

    Attributes:
        code: Error code (e.g., "FORMULA_SYNTAX")
        message: Human-readable message
        details: Additional context
    """

    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class RecoverablePricingError(PricingError):
    """An error that only invalidates the current rule for the current line."""


class FormulaSyntaxError(RecoverablePricingError):
    """Formula text could not be parsed."""

    def __init__(self, formula: str, position: int, reason: str):
        self.formula = formula
        self.position = position
        super().__init__(
            code="FORMULA_SYNTAX",
            message=f"{reason} at position {position} in formula '{formula}'",
            details={"formula": formula, "position": position},
        )


class MissingCostError(RecoverablePricingError):
    """Formula references cost but the item has no known base cost."""

    def __init__(self, formula: str):
        self.formula = formula
        super().__init__(
            code="MISSING_COST",
            message=f"Formula '{formula}' needs a base cost but none is known",
            details={"formula": formula},
        )


class DivisionByZeroError(RecoverablePricingError):
    """Formula divided by zero."""

    def __init__(self, formula: str):
        self.formula = formula
        super().__init__(
            code="DIVISION_BY_ZERO",
            message=f"Division by zero in formula '{formula}'",
            details={"formula": formula},
        )


class PricingArithmeticError(RecoverablePricingError):
    """Decimal arithmetic failed, e.g. a result too large to price in cents."""

    def __init__(self, source: str, reason: str):
        self.source = source
        super().__init__(
            code="ARITHMETIC_ERROR",
            message=f"Arithmetic error in {source}: {reason}",
            details={"source": source},
        )


class UnknownRoundingPolicyError(RecoverablePricingError):
    """Rule names a rounding policy that is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            code="UNKNOWN_ROUNDING_POLICY",
            message=f"Unknown rounding policy '{name}'",
            details={"rounding": name},
        )


class NoRuleSnapshotAvailable(PricingError):
    """Resolution was requested without a rule snapshot."""

    def __init__(self, message: str = "No pricing rule snapshot available"):
        super().__init__(code="NO_RULE_SNAPSHOT", message=message)


class RuleValidationError(PricingError):
    """A rule record failed load-time validation."""

    def __init__(self, rule_id: str, message: str, field: Optional[str] = None):
        self.rule_id = rule_id
        super().__init__(
            code="INVALID_RULE",
            message=f"Rule '{rule_id}': {message}",
            details={"rule_id": rule_id, "field": field},
        )
