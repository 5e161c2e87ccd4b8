"""
Integration tests for the HTTP API.

The app is started through its lifespan against a seeded SQLite file,
configured through EUROZONE_CONFIG_FILE.
"""

import asyncio
import json
from decimal import Decimal

import pytest

pytest.importorskip("fastapi")
pytest.importorskip("httpx")

from fastapi.testclient import TestClient

from bgn_eurozone import main as main_module
from bgn_eurozone.db.engine import create_engine
from bgn_eurozone.db.init import init_database
from bgn_eurozone.db.session import create_session_maker
from bgn_eurozone.services.base import EntityKind
from bgn_eurozone.services.catalog import SqlCatalog
from bgn_eurozone.services.settings_store import SqlSettingsStore

pytestmark = pytest.mark.integration

API_KEY = "test-key"
AUTH = {"Authorization": f"Bearer {API_KEY}"}


async def seed(db_path: str, currency: str = "BGN") -> dict[str, int]:
    engine = create_engine(db_path)
    try:
        await init_database(engine)
        maker = create_session_maker(engine)
        await SqlSettingsStore(maker).set_store_currency(currency)

        catalog = SqlCatalog(maker)
        ids = {"simple": await catalog.add_product(regular_price=Decimal("25.00"))}
        await catalog.add_product(regular_price=Decimal("40.00"), sale_price=Decimal("30.00"))
        ids["variable"] = await catalog.add_product(EntityKind.VARIABLE)
        await catalog.add_product(
            EntityKind.VARIATION, regular_price=Decimal("10.00"), parent_id=ids["variable"]
        )
        await catalog.add_product(
            EntityKind.VARIATION,
            regular_price=Decimal("20.00"),
            sale_price=Decimal("15.00"),
            parent_id=ids["variable"],
        )
        await catalog.resync_variant_price_range(ids["variable"])
        return ids
    finally:
        await engine.dispose()


@pytest.fixture
def products(tmp_path, monkeypatch) -> dict[str, int]:
    db_path = str(tmp_path / "eurozone.db")
    config_path = tmp_path / "eurozone.json"
    config_path.write_text(
        json.dumps(
            {
                "database": {"path": db_path},
                "migration": {"batch_size": 2},
                "api_key": API_KEY,
            }
        )
    )
    for name in ("EUROZONE_DB_PATH", "EUROZONE_BATCH_SIZE", "EUROZONE_API_KEY", "EUROZONE_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("EUROZONE_CONFIG_FILE", str(config_path))
    # Leave pytest's log capture handlers in place
    monkeypatch.setattr(main_module, "configure_structured_logging", lambda level: None)
    return asyncio.run(seed(db_path))


@pytest.fixture
def client(products):
    with TestClient(main_module.app) as test_client:
        yield test_client


async def set_store_currency(db_path: str, currency: str) -> None:
    engine = create_engine(db_path)
    try:
        await SqlSettingsStore(create_session_maker(engine)).set_store_currency(currency)
    finally:
        await engine.dispose()


def run_migration(client: TestClient) -> list[dict]:
    results = []
    while True:
        response = client.post("/migration/batch", headers=AUTH)
        assert response.status_code == 200
        results.append(response.json())
        if not results[-1]["has_more"]:
            return results


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["checks"]["store_currency"]["value"] == "BGN"


class TestMigrationApi:
    def test_full_migration(self, client, products):
        start = client.post("/migration/start", headers=AUTH)
        assert start.status_code == 200
        assert start.json()["count"] == 3
        assert start.json()["operation_id"].startswith("MIG_")

        results = run_migration(client)
        assert [r["processed"] for r in results] == [2, 1]

        status = client.get("/migration/status", headers=AUTH).json()
        assert status["phase"] == "complete"
        assert status["offset"] == 3

        finalized = client.post("/migration/finalize", headers=AUTH, json={"strict": True})
        assert finalized.status_code == 200
        assert finalized.json()["store_currency"] == "EUR"

        price = client.get(f"/products/{products['simple']}/price").json()
        assert price["currency"] == "EUR"
        assert price["price"] == "12.78"
        assert price["price_bgn"] == "25.00"

    def test_missing_key_is_forbidden(self, client):
        response = client.post("/migration/start")

        assert response.status_code == 403
        assert response.json()["error"] == "UNAUTHORIZED"

    def test_wrong_key_is_forbidden(self, client):
        response = client.get("/migration/status", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 403

    def test_batch_before_start_conflicts(self, client):
        response = client.post("/migration/batch", headers=AUTH, json={})

        assert response.status_code == 409
        assert response.json()["error"] == "MigrationNotStartedError"

    def test_start_on_eur_store_conflicts(self, client):
        client.post("/migration/start", headers=AUTH)
        run_migration(client)
        client.post("/migration/finalize", headers=AUTH)

        response = client.post("/migration/start", headers=AUTH)

        assert response.status_code == 409
        assert response.json()["details"] == {"expected": "BGN", "actual": "EUR"}

    def test_strict_finalize_conflicts_mid_run(self, client):
        client.post("/migration/start", headers=AUTH)
        client.post("/migration/batch", headers=AUTH)

        response = client.post("/migration/finalize", headers=AUTH, json={"strict": True})

        assert response.status_code == 409
        assert response.json()["details"] == {"offset": "2", "total": "3"}

    def test_second_start_conflicts(self, client):
        client.post("/migration/start", headers=AUTH)
        client.post("/migration/batch", headers=AUTH)

        response = client.post("/migration/start", headers=AUTH)

        assert response.status_code == 409
        assert response.json()["error"] == "MigrationAlreadyStartedError"
        assert client.get("/migration/status", headers=AUTH).json()["offset"] == 2

    def test_explicit_offset_and_clamp(self, client):
        client.post("/migration/start", headers=AUTH)

        response = client.post("/migration/batch", headers=AUTH, json={"offset": 50})

        assert response.status_code == 200
        assert response.json()["clamped"] is True
        assert response.json()["offset"] == 3

    def test_negative_offset_is_a_validation_error(self, client):
        client.post("/migration/start", headers=AUTH)

        response = client.post("/migration/batch", headers=AUTH, json={"offset": -1})

        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_resume_and_reset(self, client):
        client.post("/migration/start", headers=AUTH)
        client.post("/migration/batch", headers=AUTH)

        resumed = client.post("/migration/resume", headers=AUTH).json()
        assert resumed["offset"] == 3

        reset = client.post("/migration/reset", headers=AUTH)
        assert reset.json()["success"] is True
        assert client.get("/migration/status", headers=AUTH).json()["phase"] == "idle"


class TestPrices:
    def test_simple_product_price(self, client, products):
        data = client.get(f"/products/{products['simple']}/price").json()

        assert data["currency"] == "BGN"
        assert data["price"] == "25.00"
        assert data["price_eur"] == "12.78"

    def test_variable_product_uses_min_price(self, client, products):
        data = client.get(f"/products/{products['variable']}/price").json()

        assert (data["min_price"], data["max_price"]) == ("10.00", "15.00")
        assert data["price"] == "10.00"
        assert data["price_eur"] == "5.11"

    def test_missing_product(self, client):
        response = client.get("/products/9999/price")

        assert response.status_code == 404
        assert response.json()["error"] == "HTTP_404"

    def test_unsupported_store_currency_returns_plain_prices(self, client, products, tmp_path):
        asyncio.run(set_store_currency(str(tmp_path / "eurozone.db"), "USD"))

        response = client.get(f"/products/{products['simple']}/price")

        assert response.status_code == 200
        data = response.json()
        assert data["currency"] == "USD"
        assert data["price"] == "25.00"
        assert "price_eur" not in data
        assert "price_bgn" not in data

    def test_api_prices_toggle(self, client, products):
        settings = client.get("/settings/display").json()
        settings["locations"]["api_prices"] = False
        assert client.put("/settings/display", headers=AUTH, json=settings).status_code == 200

        data = client.get(f"/products/{products['simple']}/price").json()
        assert "price_eur" not in data

    def test_annotate(self, client):
        response = client.post("/prices/annotate", json={"fragment": "25,00 лв."})

        assert response.status_code == 200
        assert response.json() == {
            "fragment": '25,00 лв. <span class="eur-price">(12.78 €)</span>',
            "annotated": True,
        }

    def test_annotate_respects_location_toggle(self, client):
        client.put(
            "/settings/display",
            headers=AUTH,
            json={"eur_format": "divider", "locations": {"mini_cart": False}},
        )

        hidden = client.post(
            "/prices/annotate", json={"fragment": "25,00 лв.", "location": "mini_cart"}
        ).json()
        shown = client.post(
            "/prices/annotate", json={"fragment": "25,00 лв.", "location": "cart_item"}
        ).json()

        assert hidden["annotated"] is False
        assert shown["fragment"].endswith('<span class="eur-price">/ 12.78 €</span>')

    def test_settings_update_requires_key(self, client):
        response = client.put("/settings/display", json={"enabled": "no"})
        assert response.status_code == 403
        assert client.get("/settings/display").json()["enabled"] is True

    def test_invalid_settings_are_sanitized(self, client):
        response = client.put("/settings/display", headers=AUTH, json={"eur_position": "top"})

        assert response.status_code == 200
        assert response.json()["eur_position"] == "right"

    def test_eur_store_shows_lev_only_to_bulgarian_locale(self, client):
        client.post("/migration/start", headers=AUTH)
        run_migration(client)
        client.post("/migration/finalize", headers=AUTH)

        english = client.post(
            "/prices/annotate", json={"fragment": "10,22 €", "locale": "en_US"}
        ).json()
        bulgarian = client.post(
            "/prices/annotate", json={"fragment": "10,22 €", "locale": "bg_BG"}
        ).json()

        assert english == {"fragment": "10,22 €", "annotated": False}
        assert bulgarian["fragment"].endswith("(20.00 лв.)</span>")
