"""
Catalog Service - product cost/category lookup and partner level lookup.

Backed by products.csv and partners.csv. Lookup order for products:
exact name, then alias; inactive products are never returned.
"""
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

import pandas as pd
import structlog

from ..engine.models import BuyerContext, TransactionLine

logger = structlog.get_logger(__name__)

ALIAS_SEPARATOR = "|"
DEFAULT_PARTNER_LEVEL = "normal"


@dataclass(frozen=True)
class ProductInfo:
    id: str
    name: str
    category: str
    unit: str
    base_cost: Optional[Decimal]


@dataclass(frozen=True)
class PartnerInfo:
    id: str
    name: str
    type: str
    level: str


def _load_csv(path: Optional[Path]) -> pd.DataFrame:
    if path and path.exists():
        df = pd.read_csv(path, dtype=str).fillna('')
        df.columns = [c.strip() for c in df.columns]
        for col in df.columns:
            df[col] = df[col].astype(str).str.strip()
        return df
    return pd.DataFrame()


def _to_cost(value: str) -> Optional[Decimal]:
    if not value:
        return None
    try:
        return Decimal(value)
    except InvalidOperation:
        return None


class CatalogService:
    """Product and partner lookups used to enrich drafts before pricing."""

    def __init__(self, products_csv: Optional[Path] = None, partners_csv: Optional[Path] = None):
        self.products = _load_csv(products_csv)
        self.partners = _load_csv(partners_csv)

        if not self.products.empty:
            if 'is_active' in self.products.columns:
                active = self.products['is_active'].str.lower().isin(['true', '1', 'yes', ''])
                self.products = self.products[active].copy()
            if 'aliases' not in self.products.columns:
                self.products['aliases'] = ''

        logger.info("catalog_loaded", products=len(self.products), partners=len(self.partners))

    def find_product(self, name: str) -> Optional[ProductInfo]:
        """Find an active product by exact name, then by alias."""
        if self.products.empty or not name:
            return None
        name = str(name).strip()

        match = self.products[self.products['name'] == name]
        if match.empty:
            aliases = self.products['aliases'].str.split(ALIAS_SEPARATOR)
            has_alias = aliases.apply(lambda items: name in [a.strip() for a in items])
            match = self.products[has_alias]

        if match.empty:
            return None

        row = match.iloc[0]
        return ProductInfo(
            id=row.get('id', ''),
            name=row['name'],
            category=row.get('category', ''),
            unit=row.get('unit', ''),
            base_cost=_to_cost(row.get('base_cost', '')),
        )

    def find_partner(self, name_or_id: Optional[str]) -> Optional[PartnerInfo]:
        """Resolve a partner by name or id."""
        if self.partners.empty or not name_or_id:
            return None
        key = str(name_or_id).strip()

        match = self.partners[self.partners['name'] == key]
        if match.empty and 'id' in self.partners.columns:
            match = self.partners[self.partners['id'] == key]
        if match.empty:
            return None

        row = match.iloc[0]
        return PartnerInfo(
            id=row.get('id', ''),
            name=row['name'],
            type=row.get('type', 'customer'),
            level=row.get('level', '') or DEFAULT_PARTNER_LEVEL,
        )

    def buyer_context(self, name_or_id: Optional[str]) -> BuyerContext:
        """Build the buyer context for pricing. Unknown buyers keep only their spoken name."""
        partner = self.find_partner(name_or_id)
        if partner is None:
            return BuyerContext(partner_name=name_or_id or None)
        return BuyerContext(partner_id=partner.id, partner_name=partner.name, level=partner.level)

    def enrich_line(self, line: TransactionLine) -> TransactionLine:
        """Fill in base cost, category and unit from the catalog where the line lacks them."""
        product = self.find_product(line.product_name)
        if product is None:
            logger.debug("product_not_in_catalog", product=line.product_name)
            return line
        return replace(
            line,
            product_name=product.name,
            base_cost=line.base_cost if line.base_cost is not None else product.base_cost,
            category=line.category or product.category or None,
            unit=line.unit or product.unit,
        )
