"""
Rules API - FastAPI router for inspecting pricing rules.
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Optional

from ..engine.formula import to_decimal
from ..engine.models import PricingRule, TransactionLine
from .state import AppState, get_state

router = APIRouter(prefix="/api/rules", tags=["rules"])


class RuleRecord(BaseModel):
    """Request model for a rule record to validate."""
    id: str
    scope_type: str
    scope_value: str = ""
    formula: str
    rounding: Optional[str] = None
    priority: int = 0
    enabled: bool = True


class RuleResponse(BaseModel):
    """Response model for a rule."""
    id: str
    scope_type: str
    scope_value: str
    formula: str
    rounding: Optional[str]
    priority: int
    enabled: bool

    @classmethod
    def from_rule(cls, rule: PricingRule) -> 'RuleResponse':
        return cls(
            id=rule.id,
            scope_type=rule.scope_type.value,
            scope_value=rule.scope_value,
            formula=rule.formula,
            rounding=rule.rounding,
            priority=rule.priority,
            enabled=rule.enabled,
        )


class ValidationResponse(BaseModel):
    """Response model for validation."""
    valid: bool
    errors: list[str]
    warnings: list[str]


class TestRuleRequest(BaseModel):
    """Request model for testing rules."""
    product_name: str
    partner: Optional[str] = None
    base_cost: Optional[float] = None
    category: Optional[str] = None


class TestRuleResponse(BaseModel):
    """Response model for rule test."""
    matched_rules: list[dict]
    unit_price: Optional[str]
    rule_id: Optional[str]
    base_cost: Optional[str]
    trace: list[str]


# Endpoints

@router.get("", response_model=list[RuleResponse])
async def list_rules(include_disabled: bool = True, state: AppState = Depends(get_state)):
    """List all pricing rules."""
    rules = state.rules_service.list_rules(include_disabled=include_disabled)
    return [RuleResponse.from_rule(rule) for rule in rules]


@router.get("/stats")
async def get_stats(state: AppState = Depends(get_state)):
    """Get rule statistics."""
    return state.rules_service.get_stats()


@router.post("/validate", response_model=ValidationResponse)
async def validate_rule(rule_data: RuleRecord, state: AppState = Depends(get_state)):
    """Validate a rule without loading it."""
    result = state.rules_service.validate_record(rule_data.model_dump())
    return ValidationResponse(valid=result.valid, errors=result.errors, warnings=result.warnings)


@router.post("/reload")
async def reload_rules(state: AppState = Depends(get_state)):
    """Reload rules from disk and publish a new snapshot."""
    snapshot = state.rules_service.reload()
    return {
        "success": True,
        "version": snapshot.version,
        "rules": len(snapshot.rules),
        "rejected": [r.__dict__ for r in state.rules_service.rejected],
    }


@router.post("/test", response_model=TestRuleResponse)
async def test_rules(request: TestRuleRequest, state: AppState = Depends(get_state)):
    """Show the ranked rules for a buyer + product and the price the engine would pick."""
    buyer = state.catalog.buyer_context(request.partner)
    line = state.catalog.enrich_line(TransactionLine(
        product_name=request.product_name,
        base_cost=None if request.base_cost is None else to_decimal(request.base_cost),
        category=request.category,
    ))
    snapshot = state.rules_service.snapshot()

    candidates = state.engine.matcher.find_candidates(line, buyer, snapshot)
    priced = state.engine.resolve_line(line, buyer, snapshot)

    return TestRuleResponse(
        matched_rules=[
            {
                "rule_id": c.rule_id,
                "scope_type": c.rule.scope_type.value,
                "priority": c.priority,
                "formula": c.rule.formula,
                "rounding": c.rule.rounding,
                "match_reason": c.match_reason,
            }
            for c in candidates
        ],
        unit_price=None if priced.unit_price is None else str(priced.unit_price),
        rule_id=priced.rule_id,
        base_cost=None if line.base_cost is None else str(line.base_cost),
        trace=priced.get_trace_text().splitlines(),
    )


@router.get("/{rule_id}", response_model=RuleResponse)
async def get_rule(rule_id: str, state: AppState = Depends(get_state)):
    """Get a single rule by ID."""
    rule = state.rules_service.get_rule(rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail=f"Rule '{rule_id}' not found")
    return RuleResponse.from_rule(rule)
