"""
Shared service instances for the API.

Routes receive the state through ``Depends(get_state)`` so tests can swap
it with ``app.dependency_overrides``.
"""
from dataclasses import dataclass
from typing import Optional

from ..config.settings import Settings, get_settings
from ..engine.pricing_engine import PricingEngine
from ..services.catalog_service import CatalogService
from ..services.rules_service import RulesService
from ..services.transaction_service import JsonlTransactionStore, TransactionService


@dataclass
class AppState:
    settings: Settings
    rules_service: RulesService
    catalog: CatalogService
    engine: PricingEngine
    transactions: TransactionService

    @classmethod
    def build(cls, settings: Optional[Settings] = None) -> 'AppState':
        settings = settings or get_settings()
        rules_service = RulesService(settings.rules_csv)
        catalog = CatalogService(settings.products_csv, settings.partners_csv)
        engine = PricingEngine(settings)
        return cls(
            settings=settings,
            rules_service=rules_service,
            catalog=catalog,
            engine=engine,
            transactions=TransactionService(
                engine=engine,
                rules_service=rules_service,
                catalog=catalog,
                store=JsonlTransactionStore(settings.transactions_path),
            ),
        )


_state: Optional[AppState] = None


def get_state() -> AppState:
    global _state
    if _state is None:
        _state = AppState.build()
    return _state
