"""
Rules Service - read path for pricing rules.
Loads pricing_rules.csv, validates each row once, and hands out immutable
versioned snapshots to the pricing engine.
"""
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import pandas as pd
import structlog

from ..engine import formula, rounding
from ..engine.errors import FormulaSyntaxError, NoRuleSnapshotAvailable, RuleValidationError
from ..engine.models import SPECIAL_KEY_SEPARATOR, PricingRule, RuleSnapshot, ScopeType
from ..engine.rule_matcher import rank_key

logger = structlog.get_logger(__name__)


@dataclass
class ValidationResult:
    """Result of rule validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class RejectedRule:
    """A stored row that failed load-time validation."""
    rule_id: str
    reason: str


class RulesService:
    """Service for loading and inspecting pricing rules."""

    CSV_COLUMNS = ['id', 'scope_type', 'scope_value', 'formula', 'rounding', 'priority', 'enabled']

    def __init__(self, rules_csv_path: Path):
        self.rules_csv_path = rules_csv_path
        self.rejected: list[RejectedRule] = []
        self._snapshot: Optional[RuleSnapshot] = None
        self._lock = threading.Lock()

    def _read_rows(self) -> list[dict]:
        df = pd.read_csv(self.rules_csv_path, dtype=str).fillna('')
        df.columns = [c.strip() for c in df.columns]
        for col in df.columns:
            df[col] = df[col].astype(str).str.strip()
        return df.to_dict(orient='records')

    def load(self) -> RuleSnapshot:
        """
        (Re)load rules from disk and publish a new snapshot.

        Rows that fail validation are logged and skipped; a later row that
        reuses an id already loaded is skipped too.
        """
        if not self.rules_csv_path.exists():
            raise NoRuleSnapshotAvailable(f"Rules file not found at {self.rules_csv_path}")

        rules = []
        rejected = []
        seen_ids = set()
        for row in self._read_rows():
            try:
                rule = PricingRule.from_record(row)
            except RuleValidationError as e:
                rejected.append(RejectedRule(rule_id=e.rule_id, reason=e.message))
                logger.warning("rule_rejected", rule_id=e.rule_id, error=e.message)
                continue
            if rule.id in seen_ids:
                rejected.append(RejectedRule(rule_id=rule.id, reason="duplicate rule id"))
                logger.warning("rule_rejected", rule_id=rule.id, error="duplicate rule id")
                continue
            seen_ids.add(rule.id)
            rules.append(rule)

        snapshot = RuleSnapshot.build(rules)
        with self._lock:
            self._snapshot = snapshot
            self.rejected = rejected

        logger.info(
            "rules_loaded",
            path=str(self.rules_csv_path),
            rules=len(rules),
            rejected=len(rejected),
            version=snapshot.version,
        )
        return snapshot

    def reload(self) -> RuleSnapshot:
        return self.load()

    def snapshot(self) -> RuleSnapshot:
        """Current snapshot, loading on first use."""
        with self._lock:
            current = self._snapshot
        if current is None:
            current = self.load()
        return current

    def list_rules(self, include_disabled: bool = True) -> list[PricingRule]:
        """List rules from the current snapshot."""
        rules = self.snapshot().rules
        if include_disabled:
            return list(rules)
        return [r for r in rules if r.enabled]

    def get_rule(self, rule_id: str) -> Optional[PricingRule]:
        """Get a single rule by ID."""
        return self.snapshot().get(rule_id)

    def validate_record(self, row: dict) -> ValidationResult:
        """Validate a raw rule record without loading it."""
        try:
            rule = PricingRule.from_record(row)
        except RuleValidationError as e:
            return ValidationResult(valid=False, errors=[e.message])
        return self.validate_rule(rule)

    def validate_rule(self, rule: PricingRule) -> ValidationResult:
        """Check a rule's formula and rounding, and flag likely mistakes."""
        result = ValidationResult(valid=True)

        try:
            expression = formula.parse(rule.formula)
        except FormulaSyntaxError as e:
            result.errors.append(e.message)
            result.valid = False
            expression = None

        if not rounding.is_known(rule.rounding):
            result.errors.append(f"Unknown rounding policy '{rule.rounding}'")
            result.valid = False

        if not rule.enabled:
            result.warnings.append("Rule is disabled and will never match")

        if expression is not None and not expression.uses_cost:
            result.warnings.append("Formula is a fixed price and ignores cost")

        if rule.scope_type == ScopeType.SPECIAL and SPECIAL_KEY_SEPARATOR not in rule.scope_value:
            result.warnings.append(
                f"Special scope '{rule.scope_value}' is not in 'buyer{SPECIAL_KEY_SEPARATOR}product' form"
            )

        if result.valid:
            result.warnings.extend(self._check_shadowing(rule))

        return result

    def _check_shadowing(self, rule: PricingRule) -> list[str]:
        """Find enabled rules with the same scope that always outrank this one."""
        warnings = []
        try:
            existing_rules = self.snapshot().enabled_rules
        except NoRuleSnapshotAvailable:
            return warnings

        for existing in existing_rules:
            if existing.id == rule.id:
                continue
            same_scope = (
                existing.scope_type == rule.scope_type
                and existing.scope_value == rule.scope_value
            )
            if not same_scope or rank_key(existing) > rank_key(rule):
                continue
            try:
                existing_uses_cost = formula.references_cost(existing.formula)
            except FormulaSyntaxError:
                continue
            # A fixed-price rule always evaluates, so it is never fallen through
            if not existing_uses_cost or existing.formula == rule.formula:
                warnings.append(
                    f"Shadowed by rule '{existing.id}' "
                    f"(priority {existing.priority} vs {rule.priority})"
                )
        return warnings

    def get_stats(self) -> dict:
        """Get statistics about rules."""
        snapshot = self.snapshot()
        rules = snapshot.rules

        enabled = [r for r in rules if r.enabled]
        by_scope = {}
        for r in rules:
            by_scope[r.scope_type.value] = by_scope.get(r.scope_type.value, 0) + 1

        return {
            'version': snapshot.version,
            'total': len(rules),
            'enabled': len(enabled),
            'disabled': len(rules) - len(enabled),
            'rejected': len(self.rejected),
            'by_scope': by_scope,
        }
