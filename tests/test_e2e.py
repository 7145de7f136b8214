import json

import pytest
from sqlalchemy import create_engine

from stocksync.jobs import reconcile
from stocksync.logic.history import load_runs

from conftest import FakeCatalog, FakeVendor, feed_line, stock_record


@pytest.mark.asyncio
async def test_run_sync_e2e(monkeypatch, tmp_path, settings, write_feed):
    write_feed(
        [
            feed_line("SKU1", title="Dome camera", price="100,00", stock="5"),
            feed_line("SKU2", title="Bullet camera", price="0", stock="0"),
            feed_line("SKU3", title="Dell monitor", brand="Dell"),
        ]
    )
    filter_path = tmp_path / "product-filter.json"
    filter_path.write_text(json.dumps({"exclude": {"brand": ["Dell"]}}))

    settings.filter_config_path = str(filter_path)
    settings.report_dir = str(tmp_path / "reports")
    settings.database_url = f"sqlite:///{tmp_path / 'history.db'}"

    catalog = FakeCatalog()
    vendor = FakeVendor([stock_record("SKU1", local=5), stock_record("UNKNOWN", local=1)])

    class FakeEET:
        @classmethod
        def from_settings(cls, settings):
            return vendor

    monkeypatch.setattr(reconcile, "ShopifyCatalogClient", lambda settings: catalog)
    monkeypatch.setattr(reconcile, "EETClient", FakeEET)
    monkeypatch.setattr(reconcile, "configure_logging", lambda settings: None)

    report = await reconcile.run_sync(settings)

    assert report.created == 2
    assert report.updated == 1
    assert catalog.closed and vendor.closed

    snapshot = json.loads((tmp_path / "reports" / "filtered-products.json").read_text())
    assert [p["sku"] for p in snapshot["products"]] == ["SKU1", "SKU2"]
    assert snapshot["metadata"]["originalCount"] == 3
    assert list((tmp_path / "reports").glob("failures-*.csv"))

    db_engine = create_engine(settings.database_url, future=True)
    [run] = load_runs(db_engine)
    db_engine.dispose()
    assert run["created"] == 2
    assert run["failed"] == 1


def test_main_exits_on_missing_configuration(monkeypatch):
    for key in (
        "PRODUCTION",
        "SHOPIFY_TEST_STORE_ADMIN_URL",
        "SHOPIFY_TEST_STORE_ADMIN_API",
        "FEED_PATH",
        "EET_PRICE",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(reconcile, "load_dotenv", lambda: None)

    with pytest.raises(SystemExit) as excinfo:
        reconcile.main()

    assert excinfo.value.code == 1


def test_main_exits_on_missing_feed(monkeypatch, tmp_path):
    monkeypatch.setenv("SHOPIFY_TEST_STORE_ADMIN_URL", "test-store.myshopify.com")
    monkeypatch.setenv("SHOPIFY_TEST_STORE_ADMIN_API", "shpat_test")
    monkeypatch.setenv("FEED_PATH", str(tmp_path / "missing.txt"))
    monkeypatch.setenv("FILTER_CONFIG", str(tmp_path / "none.json"))
    monkeypatch.setenv("LOGGING", "false")
    monkeypatch.delenv("PRODUCTION", raising=False)
    monkeypatch.delenv("EET_USERNAME", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("REPORT_DIR", raising=False)
    monkeypatch.setattr(reconcile, "load_dotenv", lambda: None)
    monkeypatch.setattr(reconcile, "configure_logging", lambda settings: None)
    monkeypatch.setattr(reconcile, "ShopifyCatalogClient", lambda settings: FakeCatalog())

    with pytest.raises(SystemExit) as excinfo:
        reconcile.main()

    assert excinfo.value.code == 1
