"""
Shared test fixtures.
"""
import os
import sys

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

import pytest
from pathlib import Path

from autoquote.config.settings import Settings
from autoquote.engine.models import PricingRule, RuleSnapshot, ScopeType


def make_rule(
    rule_id,
    scope_type="global",
    scope_value="*",
    formula="cost * 1.2",
    rounding=None,
    priority=0,
    enabled=True,
) -> PricingRule:
    """Build a rule without going through storage."""
    return PricingRule(
        id=str(rule_id),
        scope_type=ScopeType(scope_type),
        scope_value=scope_value,
        formula=formula,
        rounding=rounding,
        priority=priority,
        enabled=enabled,
    )


def make_snapshot(*rules) -> RuleSnapshot:
    return RuleSnapshot.build(rules)


RULES_CSV = """id,scope_type,scope_value,formula,rounding,priority,enabled
1,global,*,cost * 1.3,round_to_0.5,0,true
2,category,饮料,cost * 1.5,floor_to_1,10,true
3,level,regular,cost * 1.2,floor_to_1,20,true
4,special,张三+可乐,2.5,,30,true
5,category,烟草,cost + 3,,10,false
"""

PRODUCTS_CSV = """id,name,aliases,category,unit,base_cost,is_active
1,可乐,可口可乐|cola,饮料,瓶,2.00,true
2,纸巾,抽纸,日用品,包,3.00,true
3,散装瓜子,,零食,斤,,true
4,旧款饼干,,零食,包,1.00,false
"""

PARTNERS_CSV = """id,name,type,level,note
1,张三,customer,regular,楼上理发店老板
2,李四,customer,,
"""


@pytest.fixture
def data_dir(tmp_path) -> Path:
    """A data directory with small rules, products and partners files."""
    (tmp_path / 'pricing_rules.csv').write_text(RULES_CSV, encoding='utf-8')
    (tmp_path / 'products.csv').write_text(PRODUCTS_CSV, encoding='utf-8')
    (tmp_path / 'partners.csv').write_text(PARTNERS_CSV, encoding='utf-8')
    return tmp_path


@pytest.fixture
def settings(data_dir) -> Settings:
    return Settings.load(project_root=data_dir, data_dir=data_dir)
