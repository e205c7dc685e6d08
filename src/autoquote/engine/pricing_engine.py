"""
Pricing Engine - resolves a price for every line of a transaction.

Per line:
1. Rank matching rules (priority, then scope specificity, then id)
2. Take the first rule whose formula evaluates and whose rounding is known
3. Otherwise use the price heard in speech, if any
4. Otherwise mark the line unresolved and the transaction incomplete

The engine holds no rule state of its own; every call gets an immutable
RuleSnapshot, so rule reloads never show up half-way through a transaction.
"""
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import structlog

from ..config.settings import Settings, get_settings
from . import formula, rounding
from .errors import (
    MissingCostError,
    NoRuleSnapshotAvailable,
    PricingArithmeticError,
    RecoverablePricingError,
)
from .models import (
    TWO_PLACES,
    BuyerContext,
    PricedLine,
    RuleSnapshot,
    Transaction,
    TransactionDraft,
    TransactionLine,
)
from .rule_matcher import RuleMatcher

logger = structlog.get_logger(__name__)


def _money(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _extend(unit_price: Decimal, quantity: Decimal) -> Decimal:
    """Line subtotal in cents; too-large results count against the rule."""
    try:
        return _money(unit_price * quantity)
    except ArithmeticError as e:
        raise PricingArithmeticError(f"subtotal {unit_price} x {quantity}", type(e).__name__) from e


class PricingEngine:
    """
    Core pricing engine: (rule snapshot, draft) -> priced transaction.

    Resolution never raises for a bad rule or a missing cost; those become
    line warnings and fallbacks. Only a missing snapshot is fatal.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        matcher: Optional[RuleMatcher] = None,
        max_candidates_per_line: Optional[int] = None,
        max_workers: Optional[int] = None,
    ):
        self.settings = settings or get_settings()
        self.matcher = matcher or RuleMatcher()
        self.max_candidates_per_line = (
            self.settings.max_candidates_per_line if max_candidates_per_line is None else max_candidates_per_line
        )
        self.max_workers = self.settings.max_workers if max_workers is None else max_workers

    def resolve(self, draft: TransactionDraft, snapshot: Optional[RuleSnapshot]) -> Transaction:
        """
        Price every line of a draft and aggregate the totals.

        Args:
            draft: Buyer context plus unpriced lines
            snapshot: Rule set to price against

        Returns:
            Transaction with priced lines, totals and trace

        Raises:
            NoRuleSnapshotAvailable: snapshot is None
        """
        if snapshot is None:
            raise NoRuleSnapshotAvailable()

        buyer = draft.buyer
        if self.max_workers > 1 and len(draft.lines) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                lines = list(pool.map(lambda item: self.resolve_line(item, buyer, snapshot), draft.lines))
        else:
            lines = [self.resolve_line(line, buyer, snapshot) for line in draft.lines]

        resolved = [line for line in lines if not line.price_unresolved]
        total_price = _money(sum((line.subtotal for line in resolved), Decimal("0")))

        if all(line.base_cost is not None for line in lines):
            total_cost = _money(sum((line.cost_subtotal for line in resolved), Decimal("0")))
        else:
            total_cost = None

        transaction = Transaction(
            partner_id=buyer.partner_id,
            timestamp=draft.timestamp or datetime.now(),
            lines=lines,
            total_price=total_price,
            total_cost=total_cost,
            raw_text=draft.raw_text,
            intent=draft.intent,
            incomplete=len(resolved) != len(lines),
            rules_version=snapshot.version,
        )

        transaction.add_trace("Rules Snapshot", f"{len(snapshot.rules)} rule(s)", snapshot.version)
        if buyer.level:
            transaction.add_trace("Buyer", f"Partner {buyer.partner_name or buyer.partner_id}", buyer.level)

        # Bubble up line warnings
        for line in lines:
            for warning in line.warnings:
                if warning not in transaction.warnings:
                    transaction.add_warning(warning)

        if transaction.incomplete:
            transaction.add_warning(f"{len(lines) - len(resolved)} line(s) could not be priced")
            logger.warning(
                "transaction_incomplete",
                unresolved=len(lines) - len(resolved),
                lines=len(lines),
                rules_version=snapshot.version,
            )

        transaction.add_trace("Total", f"{len(resolved)} priced line(s)", str(total_price))
        return transaction

    def resolve_line(self, line: TransactionLine, buyer: BuyerContext, snapshot: RuleSnapshot) -> PricedLine:
        """Price a single line with trace, falling back as described above."""
        priced = PricedLine(
            product_name=line.product_name,
            quantity=line.quantity,
            unit=line.unit,
            base_cost=line.base_cost,
            observed_price=line.observed_price,
            category=line.category,
        )

        if line.base_cost is not None:
            priced.add_trace("Cost Lookup", "Base cost", str(line.base_cost))
        else:
            priced.add_trace("Cost Lookup", "No base cost known")

        candidates = self.matcher.find_candidates(line, buyer, snapshot)
        priced.add_trace("Rule Lookup", "Matching rules", str(len(candidates)))

        for index, candidate in enumerate(candidates):
            if index >= self.max_candidates_per_line:
                priced.add_warning(
                    f"Stopped after {self.max_candidates_per_line} candidate rules for {line.product_name}"
                )
                logger.warning(
                    "candidate_cap_reached",
                    product=line.product_name,
                    cap=self.max_candidates_per_line,
                    candidates=len(candidates),
                )
                break

            rule = candidate.rule
            try:
                raw_price = formula.evaluate(rule.formula, line.base_cost)
                unit_price = rounding.apply(rule.rounding, raw_price)
                subtotal = _extend(unit_price, line.quantity)
            except MissingCostError:
                priced.add_trace("Rule Skipped", f"Rule {rule.id} needs a base cost", rule.formula)
                logger.debug("rule_needs_cost", rule_id=rule.id, product=line.product_name)
                continue
            except RecoverablePricingError as e:
                priced.add_trace("Rule Skipped", f"Rule {rule.id} failed: {e.code}", e.message)
                priced.add_warning(f"Rule {rule.id} is malformed: {e.message}")
                logger.warning(
                    "malformed_rule",
                    rule_id=rule.id,
                    code=e.code,
                    error=e.message,
                    product=line.product_name,
                )
                continue

            priced.unit_price = unit_price
            priced.subtotal = subtotal
            priced.rule_id = rule.id
            priced.rule_priority = rule.priority
            priced.rule_scope = rule.scope_type.value
            priced.add_trace(
                "Rule Applied",
                f"Rule {rule.id} ({candidate.match_reason}, priority {rule.priority}): {rule.formula}",
                str(raw_price),
            )
            if rule.rounding:
                priced.add_trace("Rounding", rule.rounding, str(unit_price))
            break
        else:
            self._fallback(priced, line)
            return priced

        if priced.unit_price is None:
            # Candidate cap reached without a winner
            self._fallback(priced, line)
            return priced

        priced.add_trace("Extension", f"Quantity {line.quantity} × {priced.unit_price}", str(priced.subtotal))
        return priced

    def _fallback(self, priced: PricedLine, line: TransactionLine):
        if line.observed_price is not None:
            priced.unit_price = line.observed_price
            priced.subtotal = _money(line.observed_price * line.quantity)
            priced.used_observed_fallback = True
            priced.add_trace("Price Resolution", "Unpriced, using observed value", str(line.observed_price))
            priced.add_warning(f"Observed price used for {line.product_name}")
            return

        priced.price_unresolved = True
        priced.add_trace("Price Resolution", "No rule and no observed price")
        priced.add_warning(f"Price unresolved for {line.product_name}")
        logger.info("price_unresolved", product=line.product_name)
