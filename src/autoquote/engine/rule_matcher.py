"""
Rule Matcher - finds the pricing rules whose scope covers a line item.

Used by the pricing engine, which walks the ranked candidates and takes
the first one that prices the line.
"""
from dataclasses import dataclass
from typing import Iterator, Optional

from .models import BuyerContext, PricingRule, RuleSnapshot, ScopeType, TransactionLine, special_key


@dataclass(frozen=True)
class Candidate:
    """A rule that matched with context."""
    rule: PricingRule
    match_reason: str

    @property
    def rule_id(self) -> str:
        return self.rule.id

    @property
    def priority(self) -> int:
        return self.rule.priority


def _id_key(rule_id: str) -> tuple:
    # Numeric ids sort numerically ("9" before "10"), and before any text id
    if rule_id.isascii() and rule_id.isdigit():
        return (0, int(rule_id), rule_id)
    return (1, 0, rule_id)


def rank_key(rule: PricingRule) -> tuple:
    """Sort key: priority desc, specificity desc, id asc."""
    return (-rule.priority, -rule.scope_type.specificity, _id_key(rule.id))


class CandidateSequence:
    """
    Ranked candidates for one line.

    Finite and restartable: every iteration starts again from the best
    candidate. Sorting happens on first iteration.
    """

    def __init__(self, matched: list[Candidate]):
        self._matched = matched
        self._ranked: Optional[tuple[Candidate, ...]] = None

    def _ensure_ranked(self) -> tuple[Candidate, ...]:
        if self._ranked is None:
            self._ranked = tuple(sorted(self._matched, key=lambda c: rank_key(c.rule)))
        return self._ranked

    def __iter__(self) -> Iterator[Candidate]:
        return iter(self._ensure_ranked())

    def __len__(self) -> int:
        return len(self._matched)

    def __bool__(self) -> bool:
        return bool(self._matched)

    def first(self) -> Optional[Candidate]:
        ranked = self._ensure_ranked()
        return ranked[0] if ranked else None

    def rules(self) -> list[PricingRule]:
        return [c.rule for c in self]


class RuleMatcher:
    """
    Matches pricing rules against a line item and buyer.

    Scope semantics:
    - global: always matches
    - category: line category equals the scope value
    - level: buyer level equals the scope value
    - special: scope value equals "<buyer>+<product>" for the buyer's id or name
    """

    def match_reason(self, rule: PricingRule, line: TransactionLine, buyer: BuyerContext) -> Optional[str]:
        """Return why the rule matches, or None if it doesn't."""
        if not rule.enabled:
            return None

        if rule.scope_type == ScopeType.GLOBAL:
            return "global"

        if rule.scope_type == ScopeType.CATEGORY:
            if line.category is not None and line.category == rule.scope_value:
                return f"category={line.category}"
            return None

        if rule.scope_type == ScopeType.LEVEL:
            if buyer.level is not None and buyer.level == rule.scope_value:
                return f"level={buyer.level}"
            return None

        for buyer_id in buyer.identities():
            if special_key(buyer_id, line.product_name) == rule.scope_value:
                return f"special={rule.scope_value}"
        return None

    def find_candidates(
        self,
        line: TransactionLine,
        buyer: BuyerContext,
        snapshot: RuleSnapshot,
    ) -> CandidateSequence:
        """
        Find all enabled rules that match the line.

        Returns a CandidateSequence ranked by priority (higher first), then
        scope specificity, then rule id.
        """
        matched = []
        for rule in snapshot.rules:
            reason = self.match_reason(rule, line, buyer)
            if reason is not None:
                matched.append(Candidate(rule=rule, match_reason=reason))
        return CandidateSequence(matched)


def find_candidates(line: TransactionLine, buyer: BuyerContext, snapshot: RuleSnapshot) -> CandidateSequence:
    return RuleMatcher().find_candidates(line, buyer, snapshot)
