from decimal import Decimal

import pytest
from stockledger.config import Settings, get_settings
from stockledger.models import Receipt
from stockledger.services import AdjustmentService, PaymentBatchAllocator, StockCache

from .fakes import FakeInventoryBackend, FakeSalesBackend, make_lot, make_record, make_sale


@pytest.fixture(autouse=True)
def test_env(monkeypatch: pytest.MonkeyPatch):
    """Point settings at a fake backend and drop the cached instance around each test."""
    monkeypatch.setenv("API_BASE_URL", "http://backend.test/api")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        API_BASE_URL="http://backend.test/api",
        API_TOKEN="session-token",  # noqa: S106
        READ_RETRY_ATTEMPTS=3,
        INVENTORY_PAGE_SIZE=2,
        LOTS_PAGE_SIZE=50,
    )


@pytest.fixture
def inventory_backend() -> FakeInventoryBackend:
    """Two warehouses; presentation 10 is stocked in both."""
    return FakeInventoryBackend(
        records=[
            make_record(1, presentation_id=10, warehouse_id=1, quantity=10, min_stock=3, product_id=7),
            make_record(2, presentation_id=11, warehouse_id=1, quantity=0, min_stock=2, product_id=8),
            make_record(3, presentation_id=12, warehouse_id=1, quantity=4, min_stock=5, product_id=7),
            make_record(4, presentation_id=10, warehouse_id=2, quantity=6, min_stock=1, product_id=7),
        ],
        lots=[
            make_lot(100, product_id=7, available="25.5"),
            make_lot(101, product_id=8, available="3.0"),
            make_lot(102, product_id=7, available="0"),
        ],
    )


@pytest.fixture
def sales_backend() -> FakeSalesBackend:
    return FakeSalesBackend(
        sales=[
            make_sale(1, "40.00", total="100.00"),
            make_sale(2, "60.00"),
            make_sale(3, "15.50"),
        ]
    )


@pytest.fixture
def cache(inventory_backend: FakeInventoryBackend) -> StockCache:
    return StockCache(inventory_backend, page_size=2)


@pytest.fixture
def adjustments(inventory_backend: FakeInventoryBackend, cache: StockCache) -> AdjustmentService:
    return AdjustmentService(inventory_backend, cache)


@pytest.fixture
def allocator(sales_backend: FakeSalesBackend) -> PaymentBatchAllocator:
    return PaymentBatchAllocator(sales_backend, epsilon=Decimal("0.001"))


@pytest.fixture
def receipt() -> Receipt:
    return Receipt.from_bytes(b"\x89PNG fake image", filename="voucher.png")
