"""
Transaction Service - turns intent-pipeline output into priced, stored
transactions.

The intent pipeline hands over an ``itemsJson`` list such as
``[{"name": "可乐", "qty": 2, "unit": "瓶", "price": 3}]``. Each item is
enriched from the catalog, priced against the current rule snapshot and
the result is appended to the transaction store.
"""
import json
import threading
import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional

import structlog

from ..engine.models import Transaction, TransactionDraft, TransactionLine
from ..engine.pricing_engine import PricingEngine
from .catalog_service import CatalogService
from .rules_service import RulesService

logger = structlog.get_logger(__name__)


def _first(item: dict, *keys: str) -> Any:
    for key in keys:
        value = item.get(key)
        if value not in (None, ''):
            return value
    return None


def _decimal(value: Any, field_name: str, product: str) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid {field_name} '{value}' for item '{product}'") from None


class JsonlTransactionStore:
    """Append-only JSON-lines store implementing the save/load contract."""

    def __init__(self, path: Path):
        self.path = path
        self._lock = threading.Lock()

    def save(self, transaction: Transaction) -> str:
        record = transaction.to_dict()
        record['id'] = uuid.uuid4().hex
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            with open(self.path, 'a', encoding='utf-8') as f:
                f.write(json.dumps(record, ensure_ascii=False) + "\n")
        return record['id']

    def list(self) -> list[dict]:
        if not self.path.exists():
            return []
        with open(self.path, 'r', encoding='utf-8') as f:
            return [json.loads(line) for line in f if line.strip()]

    def load(self, transaction_id: str) -> Optional[dict]:
        for record in self.list():
            if record.get('id') == transaction_id:
                return record
        return None


class TransactionService:
    """Builds drafts from item dicts, prices them and stores the result."""

    def __init__(
        self,
        engine: PricingEngine,
        rules_service: RulesService,
        catalog: Optional[CatalogService] = None,
        store: Optional[JsonlTransactionStore] = None,
    ):
        self.engine = engine
        self.rules_service = rules_service
        self.catalog = catalog or CatalogService()
        self.store = store

    def build_draft(
        self,
        items: list[dict],
        partner: Optional[str] = None,
        raw_text: str = "",
        intent: str = "",
        timestamp: Optional[datetime] = None,
    ) -> TransactionDraft:
        """
        Build a pricing draft from itemsJson entries.

        Accepted keys per item: name/product_name, qty/quantity, unit,
        price/observed_price, cost/base_cost, category.
        """
        lines = []
        for item in items:
            name = _first(item, 'name', 'product_name', 'productName')
            if not name:
                raise ValueError(f"Item without a product name: {item}")
            name = str(name).strip()

            quantity = _decimal(_first(item, 'qty', 'quantity'), 'quantity', name)
            if quantity is None:
                quantity = Decimal("1")
            if quantity <= 0:
                raise ValueError(f"Quantity must be positive for item '{name}'")

            line = TransactionLine(
                product_name=name,
                quantity=quantity,
                unit=str(_first(item, 'unit') or ''),
                base_cost=_decimal(_first(item, 'cost', 'base_cost', 'baseCost'), 'cost', name),
                observed_price=_decimal(_first(item, 'price', 'observed_price', 'observedPrice'), 'price', name),
                category=_first(item, 'category'),
            )
            lines.append(self.catalog.enrich_line(line))

        return TransactionDraft(
            buyer=self.catalog.buyer_context(partner),
            lines=lines,
            raw_text=raw_text,
            intent=intent,
            timestamp=timestamp,
        )

    def price(self, draft: TransactionDraft) -> Transaction:
        """Resolve a draft against the current rule snapshot."""
        return self.engine.resolve(draft, self.rules_service.snapshot())

    def record(
        self,
        items: list[dict],
        partner: Optional[str] = None,
        raw_text: str = "",
        intent: str = "",
        save: bool = True,
    ) -> tuple[Transaction, Optional[str]]:
        """
        Price an itemsJson list and persist the transaction.

        Returns (transaction, stored id or None when not saved).
        """
        draft = self.build_draft(items, partner=partner, raw_text=raw_text, intent=intent)
        transaction = self.price(draft)

        transaction_id = None
        if save and self.store is not None:
            transaction_id = self.store.save(transaction)
            logger.info(
                "transaction_saved",
                transaction_id=transaction_id,
                total_price=str(transaction.total_price),
                incomplete=transaction.incomplete,
            )
        return transaction, transaction_id
