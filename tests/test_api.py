"""
HTTP API tests using FastAPI's TestClient against temporary data files.
"""
import pytest
from fastapi.testclient import TestClient

from autoquote.api.main import app
from autoquote.api.state import AppState, get_state


@pytest.fixture
def client(settings):
    state = AppState.build(settings)
    app.dependency_overrides[get_state] = lambda: state
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_root(client):
    assert client.get("/").json()["status"] == "online"


def test_resolve(client, settings):
    response = client.post("/resolve", json={
        "items": [{"name": "可乐", "qty": 2}, {"name": "unknown"}],
        "partner": "张三",
        "raw_text": "张三 两瓶可乐 还有一个",
        "intent": "retail_quote",
        "save": True,
    })
    assert response.status_code == 200
    body = response.json()
    assert body["total_price"] == "5.00"
    assert body["incomplete"] is True
    assert body["items"][1]["price_unresolved"] is True
    assert body["id"]
    assert settings.transactions_path.exists()


def test_resolve_rejects_bad_items(client):
    response = client.post("/resolve", json={"items": [{"name": "可乐", "qty": -1}]})
    assert response.status_code == 422


def test_resolve_without_rules_file(client, settings):
    settings.rules_csv.unlink()
    response = client.post("/resolve", json={"items": [{"name": "可乐"}]})
    assert response.status_code == 503
    assert response.json()["error"]["code"] == "NO_RULE_SNAPSHOT"


def test_formula_evaluate(client):
    response = client.post("/formula/evaluate", json={"formula": "cost * 1.2", "cost": 10})
    assert response.json()["value"] == "12.00"


def test_formula_errors_map_to_422(client):
    response = client.post("/formula/evaluate", json={"formula": "cost * 1.2"})
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "MISSING_COST"

    response = client.post("/formula/evaluate", json={"formula": "cost *", "cost": 1})
    assert response.json()["error"]["details"]["position"] == 6


def test_list_and_get_rules(client):
    rules = client.get("/api/rules").json()
    assert len(rules) == 5
    enabled = client.get("/api/rules", params={"include_disabled": False}).json()
    assert len(enabled) == 4

    assert client.get("/api/rules/4").json()["scope_value"] == "张三+可乐"
    assert client.get("/api/rules/404").status_code == 404


def test_rule_stats(client):
    stats = client.get("/api/rules/stats").json()
    assert stats["total"] == 5
    assert stats["enabled"] == 4


def test_validate_rule(client):
    response = client.post("/api/rules/validate", json={
        "id": "new", "scope_type": "global", "formula": "cost * (1.2", "rounding": "floor_to_1",
    })
    body = response.json()
    assert body["valid"] is False
    assert "position" in body["errors"][0]


def test_rule_test_endpoint(client):
    body = client.post("/api/rules/test", json={"product_name": "可乐", "partner": "张三"}).json()
    assert [r["rule_id"] for r in body["matched_rules"]] == ["4", "3", "2", "1"]
    assert body["rule_id"] == "4"
    assert body["unit_price"] == "2.5"
    assert body["base_cost"] == "2.00"


def test_reload_and_status(client, settings):
    before = client.get("/system/status").json()
    with open(settings.rules_csv, "a", encoding="utf-8") as f:
        f.write("9,global,*,cost,,99,true\n")
    reloaded = client.post("/api/rules/reload").json()

    assert reloaded["rules"] == 6
    assert reloaded["version"] != before["rules_version"]
    assert client.get("/system/status").json()["rules_count"] == 6
