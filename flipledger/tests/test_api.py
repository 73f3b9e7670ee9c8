"""Tests for the HTTP surface, with in-memory collaborators."""

import pytest
from fastapi.testclient import TestClient

from flipledger.api import create_app
from flipledger.config import Settings, load_settings


def fake_search(query):
    catalog = {
        "dragon bones": [{"id": 536, "name": "Dragon bones", "price": 3200, "icon": "536.gif"}],
        "yew logs": [{"id": 1515, "name": "Yew logs", "price": 410}],
        "nature rune": [{"id": 561, "name": "Nature rune", "price": 250}],
    }
    return catalog.get(query.lower(), [])


@pytest.fixture
def stored():
    return []


@pytest.fixture
def client(stored):
    app = create_app(
        search_fn=fake_search,
        holdings_sink=stored.extend,
        ocr_fn=lambda image: ("500 Yew logs", 80),
        settings=Settings(),
    )
    return TestClient(app)


class TestSettings:
    def test_defaults(self):
        settings = load_settings({})
        assert settings.anthropic_api_key is None
        assert settings.log_level == "INFO"
        assert settings.cors_origins == ("http://localhost:3000",)

    def test_env_overrides(self):
        settings = load_settings({
            "ANTHROPIC_API_KEY": "k",
            "FLIPLEDGER_LOG_LEVEL": "debug",
            "FLIPLEDGER_CORS_ORIGINS": "https://a.example, https://b.example",
        })
        assert settings.anthropic_api_key == "k"
        assert settings.log_level == "DEBUG"
        assert settings.cors_origins == ("https://a.example", "https://b.example")


class TestEndpoints:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok", "vision": False}

    def test_tax(self, client):
        resp = client.post("/tax", json={"sell_price": 200, "buy_price": 100, "quantity": 10})
        body = resp.json()
        assert body["tax"] == 40
        assert body["profit"] == 960
        assert body["roi"] == pytest.approx(96.0)

    def test_import_text(self, client):
        resp = client.post("/import/text", json={"raw_text": "1.2K x Dragon bones\nBank\n500 Yew logs"})
        body = resp.json()
        assert body["method"] == "ocr"
        assert [i["match"]["id"] for i in body["items"]] == [536, 1515]
        assert body["items"][0]["original"]["quantity"] == 1200
        assert body["items"][0]["suggested_buy_price"] == 3200

    def test_import_screenshot_uses_ocr_without_key(self, client):
        resp = client.post(
            "/import/screenshot",
            files={"screenshot": ("bank.png", b"\x89PNG\r\n\x1a\nfake", "image/png")},
        )
        body = resp.json()
        assert resp.status_code == 200
        assert body["method"] == "ocr"
        assert body["items"][0]["match"]["name"] == "Yew logs"

    def test_confirm(self, client, stored):
        resp = client.post("/import/confirm", json={"items": [
            {"item_id": 536, "item_name": "Dragon bones", "quantity": 1200, "avg_buy_price": 3200},
            {"item_id": 1515, "item_name": "Yew logs", "quantity": 500, "avg_buy_price": 410,
             "selected": False},
        ]})
        assert resp.status_code == 201
        assert [h["item_id"] for h in resp.json()] == [536]
        assert len(stored) == 1

    def test_confirm_nothing_eligible(self, client, stored):
        resp = client.post("/import/confirm", json={"items": [
            {"item_name": "Mystery", "quantity": 1, "avg_buy_price": 0},
        ]})
        assert resp.status_code == 400
        assert stored == []

    def test_profile(self, client):
        resp = client.post("/profile", json={
            "now": "2025-06-30T12:00:00Z",
            "trades": [{
                "item_name": "Yew logs", "buy_price": 100, "sell_price": 200, "quantity": 10,
                "bought_at": "2025-06-30T08:00:00Z", "sold_at": "2025-06-30T10:00:00Z",
            }],
        })
        body = resp.json()
        assert body["total_flips"] == 1
        assert body["total_profit"] == 960
        assert body["trading_volume"]["daily"] == 1000
        assert body["risk_profile"] == "aggressive"

    def test_recommendations_fallback_without_key(self, client):
        resp = client.post("/recommendations", json={"trades": []})
        assert resp.status_code == 200
        body = resp.json()
        assert [r["item_name"] for r in body] == ["Nature rune"]
        assert body[0]["item_id"] == 561
        assert body[0]["confidence"] == "medium"
