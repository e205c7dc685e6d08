"""Engine subpackage - rule matching, formula evaluation and price resolution."""
from .pricing_engine import PricingEngine
from .rule_matcher import RuleMatcher, find_candidates
from .models import (
    BuyerContext,
    PricedLine,
    PricingRule,
    RuleSnapshot,
    ScopeType,
    Transaction,
    TransactionDraft,
    TransactionLine,
)

__all__ = [
    'PricingEngine', 'RuleMatcher', 'find_candidates',
    'BuyerContext', 'PricedLine', 'PricingRule', 'RuleSnapshot', 'ScopeType',
    'Transaction', 'TransactionDraft', 'TransactionLine',
]
