from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from typing import Optional
import structlog

from autoquote import __version__
from autoquote.api.rules_api import router as rules_router
from autoquote.api.state import AppState, get_state
from autoquote.engine import formula
from autoquote.engine.errors import NoRuleSnapshotAvailable, PricingError, RecoverablePricingError
from autoquote.logging_config import configure_logging

configure_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="AutoQuote Pricing API",
    description="Rule-based pricing for voice-captured transactions",
    version=__version__
)

# Enable CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include rules inspection API
app.include_router(rules_router)


@app.exception_handler(PricingError)
async def pricing_error_handler(request: Request, exc: PricingError):
    if isinstance(exc, NoRuleSnapshotAvailable):
        status_code = 503
    elif isinstance(exc, RecoverablePricingError):
        status_code = 422
    else:
        status_code = 400
    logger.warning("pricing_error", code=exc.code, error=exc.message, path=request.url.path)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


class ResolveRequest(BaseModel):
    items: list[dict]
    partner: Optional[str] = None
    raw_text: str = ""
    intent: str = ""
    save: bool = False


class FormulaRequest(BaseModel):
    formula: str
    cost: Optional[float] = None


@app.get("/")
async def root():
    return {"status": "online", "message": "AutoQuote Pricing API Active"}


@app.post("/resolve")
async def resolve_transaction(req: ResolveRequest, state: AppState = Depends(get_state)):
    try:
        transaction, transaction_id = state.transactions.record(
            req.items,
            partner=req.partner,
            raw_text=req.raw_text,
            intent=req.intent,
            save=req.save,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    result = transaction.to_dict()
    result["id"] = transaction_id
    return result


@app.post("/formula/evaluate")
async def evaluate_formula(req: FormulaRequest):
    cost = None if req.cost is None else formula.to_decimal(req.cost)
    value = formula.evaluate(req.formula, cost)
    return {"formula": req.formula, "cost": None if cost is None else str(cost), "value": str(value)}


@app.get("/system/status")
async def get_status(state: AppState = Depends(get_state)):
    snapshot = state.rules_service.snapshot()
    return {
        "engine_active": True,
        "rules_version": snapshot.version,
        "rules_count": len(snapshot.rules),
        "rules_rejected": len(state.rules_service.rejected),
        "products_count": len(state.catalog.products),
        "partners_count": len(state.catalog.partners),
    }
