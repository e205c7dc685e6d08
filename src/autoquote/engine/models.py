"""
Data models for the pricing engine.

Uses dataclasses for structured, type-safe data representation.
Rules and snapshots are frozen: they are validated once at load time and
shared read-only across resolutions.
"""
import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, Optional

from .errors import RuleValidationError

TWO_PLACES = Decimal("0.01")


class ScopeType(str, Enum):
    """Dimension a pricing rule applies to."""
    GLOBAL = "global"
    CATEGORY = "category"
    LEVEL = "level"
    SPECIAL = "special"

    @property
    def specificity(self) -> int:
        """Narrower scopes rank higher: special > level > category > global."""
        return _SPECIFICITY[self]


_SPECIFICITY = {
    ScopeType.GLOBAL: 0,
    ScopeType.CATEGORY: 1,
    ScopeType.LEVEL: 2,
    ScopeType.SPECIAL: 3,
}

SPECIAL_KEY_SEPARATOR = "+"


def special_key(buyer: str, product_name: str) -> str:
    """Composite scope value for a buyer-specific product rule, e.g. "张三+可乐"."""
    return f"{buyer}{SPECIAL_KEY_SEPARATOR}{product_name}"


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "y")


@dataclass(frozen=True)
class PricingRule:
    """A configured pricing rule."""
    id: str
    scope_type: ScopeType
    scope_value: str
    formula: str
    rounding: Optional[str] = None
    priority: int = 0
    enabled: bool = True

    @classmethod
    def from_record(cls, row: dict) -> 'PricingRule':
        """
        Create a validated rule from a stored record (CSV row, JSON object).

        Accepts snake_case or the camelCase column names of the rule table.
        Raises RuleValidationError on structural problems.
        """
        rule_id = str(row.get('id', '') or '').strip()
        if not rule_id:
            raise RuleValidationError('?', "id is required", field='id')

        raw_scope = str(row.get('scope_type', row.get('scopeType', '')) or '').strip().lower()
        try:
            scope_type = ScopeType(raw_scope)
        except ValueError:
            raise RuleValidationError(rule_id, f"unknown scope type '{raw_scope}'", field='scope_type') from None

        scope_value = str(row.get('scope_value', row.get('scopeValue', '')) or '').strip()
        if scope_type != ScopeType.GLOBAL and not scope_value:
            raise RuleValidationError(rule_id, "scope value is required", field='scope_value')

        formula = str(row.get('formula', '') or '').strip()
        if not formula:
            raise RuleValidationError(rule_id, "formula is required", field='formula')

        raw_priority = row.get('priority', 0)
        if raw_priority in (None, ''):
            raw_priority = 0
        try:
            priority = int(str(raw_priority).strip())
        except ValueError:
            raise RuleValidationError(rule_id, f"priority must be an integer, got '{raw_priority}'", field='priority') from None

        rounding = str(row.get('rounding', '') or '').strip() or None
        enabled = _parse_bool(row.get('enabled', True))

        return cls(
            id=rule_id,
            scope_type=scope_type,
            scope_value=scope_value,
            formula=formula,
            rounding=rounding,
            priority=priority,
            enabled=enabled,
        )

    def to_record(self) -> dict:
        """Convert to storage row format."""
        return {
            'id': self.id,
            'scope_type': self.scope_type.value,
            'scope_value': self.scope_value,
            'formula': self.formula,
            'rounding': self.rounding or '',
            'priority': str(self.priority),
            'enabled': 'true' if self.enabled else 'false',
        }


@dataclass(frozen=True)
class RuleSnapshot:
    """An immutable, versioned view of the rule set for one resolution call."""
    version: str
    rules: tuple[PricingRule, ...]

    @classmethod
    def build(cls, rules: Iterable[PricingRule]) -> 'RuleSnapshot':
        """Freeze rules into a snapshot versioned by a content hash."""
        frozen = tuple(rules)
        seen = set()
        for rule in frozen:
            if rule.id in seen:
                raise RuleValidationError(rule.id, "duplicate rule id", field='id')
            seen.add(rule.id)

        digest = hashlib.sha256()
        for rule in sorted(frozen, key=lambda r: r.id):
            digest.update(repr(sorted(rule.to_record().items())).encode('utf-8'))
        return cls(version=digest.hexdigest()[:12], rules=frozen)

    @property
    def enabled_rules(self) -> tuple[PricingRule, ...]:
        return tuple(r for r in self.rules if r.enabled)

    def get(self, rule_id: str) -> Optional[PricingRule]:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None


@dataclass(frozen=True)
class BuyerContext:
    """Who is buying, as resolved by the partner lookup."""
    partner_id: Optional[str] = None
    partner_name: Optional[str] = None
    level: Optional[str] = None

    def identities(self) -> list[str]:
        """Buyer identifiers usable in special-rule keys."""
        return [v for v in (self.partner_id, self.partner_name) if v]


@dataclass(frozen=True)
class TransactionLine:
    """A single sold item as extracted from speech."""
    product_name: str
    quantity: Decimal = Decimal("1")
    unit: str = ""
    base_cost: Optional[Decimal] = None
    observed_price: Optional[Decimal] = None
    category: Optional[str] = None


@dataclass
class TransactionDraft:
    """Unpriced transaction handed over by the speech/intent pipeline."""
    buyer: BuyerContext
    lines: list[TransactionLine]
    raw_text: str = ""
    intent: str = ""
    timestamp: Optional[datetime] = None


@dataclass
class TraceStep:
    """A single step in the pricing resolution trace."""
    step: str
    description: str
    value: Optional[str] = None


@dataclass
class PricedLine:
    """A line item with its resolved price and provenance."""
    product_name: str
    quantity: Decimal
    unit: str
    base_cost: Optional[Decimal]
    observed_price: Optional[Decimal] = None
    category: Optional[str] = None
    unit_price: Optional[Decimal] = None
    subtotal: Optional[Decimal] = None
    rule_id: Optional[str] = None
    rule_priority: Optional[int] = None
    rule_scope: Optional[str] = None
    used_observed_fallback: bool = False
    price_unresolved: bool = False
    warnings: list[str] = field(default_factory=list)
    trace: list[TraceStep] = field(default_factory=list)

    @property
    def cost_subtotal(self) -> Optional[Decimal]:
        if self.base_cost is None:
            return None
        return self.base_cost * self.quantity

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the trace for this line item."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def add_warning(self, warning: str):
        """Add a warning for this line item."""
        self.warnings.append(warning)

    def get_trace_text(self) -> str:
        """Get human-readable trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"→ {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"→ {t.step}: {t.description}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        """Item record in the stored itemsJson shape plus provenance."""
        return {
            "product_name": self.product_name,
            "qty": _fmt(self.quantity),
            "unit": self.unit,
            "price": _fmt(self.unit_price),
            "subtotal": _fmt(self.subtotal),
            "cost": _fmt(self.base_cost),
            "category": self.category,
            "rule_id": self.rule_id,
            "rule_priority": self.rule_priority,
            "rule_scope": self.rule_scope,
            "used_observed_fallback": self.used_observed_fallback,
            "price_unresolved": self.price_unresolved,
            "warnings": list(self.warnings),
        }


@dataclass
class Transaction:
    """A priced transaction, ready for persistence."""
    partner_id: Optional[str]
    timestamp: datetime
    lines: list[PricedLine]
    total_price: Decimal
    total_cost: Optional[Decimal]
    raw_text: str = ""
    intent: str = ""
    incomplete: bool = False
    rules_version: Optional[str] = None
    warnings: list[str] = field(default_factory=list)
    trace: list[TraceStep] = field(default_factory=list)

    @property
    def gross_profit(self) -> Optional[Decimal]:
        if self.total_cost is None:
            return None
        return self.total_price - self.total_cost

    @property
    def profit_margin(self) -> Optional[Decimal]:
        """Gross profit as a percentage of total price, 2 places (50.00 means half)."""
        profit = self.gross_profit
        if profit is None or self.total_price == 0:
            return None
        return (profit * 100 / self.total_price).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the transaction-level trace."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def add_warning(self, warning: str):
        """Add a transaction-level warning."""
        self.warnings.append(warning)

    def to_dict(self) -> dict:
        """Serialize for the persistence collaborator. Decimals become strings."""
        return {
            "partner_id": self.partner_id,
            "timestamp": self.timestamp.isoformat(),
            "items": [line.to_dict() for line in self.lines],
            "total_price": _fmt(self.total_price),
            "total_cost": _fmt(self.total_cost),
            "gross_profit": _fmt(self.gross_profit),
            "profit_margin": _fmt(self.profit_margin),
            "raw_text": self.raw_text,
            "intent": self.intent,
            "incomplete": self.incomplete,
            "rules_version": self.rules_version,
            "warnings": list(self.warnings),
        }


def _fmt(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)
