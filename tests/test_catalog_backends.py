import asyncio
import time
from types import SimpleNamespace
from decimal import Decimal

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from configurator.core.database import Base
from configurator.core.errors import CatalogFetchError
from configurator.models.catalog_group import CatalogGroup
from configurator.models.catalog_option import CatalogOption
from configurator.models.catalog_product import CatalogProduct
from configurator.models.catalog_product_group import CatalogProductGroup
from configurator.schemas.catalog import CompositionType, Product
from configurator.services.catalog_backend import HttpCatalogBackend, build_catalog_backend
from configurator.services.sql_catalog import SqlCatalogBackend, load_group_with_options, load_product

PRODUCT_PAYLOAD = {
    "id": 1,
    "name": "Hambúrguer",
    "price": 30.0,
    "compositionType": "SELECTABLE",
    "productGroups": [{"id": 10, "name": "Pão", "minQuantity": 1, "maxQuantity": 1, "options": []}],
}

GROUP_PAYLOAD = {
    "id": 10,
    "name": "Pão",
    "minQuantity": 1,
    "maxQuantity": 1,
    "options": [
        {"id": 101, "productId": 201, "productName": "Pão Brioche", "maxQuantity": 1, "priceIncrease": 0},
        {"id": 102, "productId": 202, "productName": "Pão Australiano", "maxQuantity": 1, "priceIncrease": 10},
    ],
}


async def _no_sleep(_seconds):
    return None


def test_http_backend_parses_product_and_group():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/products/1":
            return httpx.Response(200, json=PRODUCT_PAYLOAD)
        if request.url.path == "/api/groups/10":
            return httpx.Response(200, json=GROUP_PAYLOAD)
        return httpx.Response(404, json={"detail": "not found"})

    backend = HttpCatalogBackend("http://catalog.test/api/", transport=httpx.MockTransport(handler))

    product = asyncio.run(backend.fetch_product(1))
    group = asyncio.run(backend.fetch_group_with_options(10))

    assert product.composition_type is CompositionType.SELECTABLE
    assert product.price == Decimal("30.0")
    assert product.product_groups[0].is_hydrated is False
    assert [option.product_name for option in group.options] == ["Pão Brioche", "Pão Australiano"]
    assert group.options[1].price_increase == Decimal("10")


def test_http_backend_retries_transient_errors():
    attempts = []
    sleeps = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request.url.path)
        if len(attempts) < 3:
            return httpx.Response(503, text="busy")
        return httpx.Response(200, json=GROUP_PAYLOAD)

    async def record_sleep(seconds):
        sleeps.append(seconds)

    backend = HttpCatalogBackend(
        "http://catalog.test/api",
        retries=3,
        transport=httpx.MockTransport(handler),
        sleep=record_sleep,
    )

    group = asyncio.run(backend.fetch_group_with_options(10))

    assert group.id == 10
    assert len(attempts) == 3
    assert sleeps == [1.0, 2.0]


def test_http_backend_does_not_retry_client_errors():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request.url.path)
        return httpx.Response(404, text="Produto não encontrado")

    backend = HttpCatalogBackend(
        "http://catalog.test/api",
        transport=httpx.MockTransport(handler),
        sleep=_no_sleep,
    )

    with pytest.raises(CatalogFetchError) as exc_info:
        asyncio.run(backend.fetch_product(99))

    assert exc_info.value.status_code == 404
    assert len(attempts) == 1


def test_http_backend_reports_network_failure_after_retries():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    backend = HttpCatalogBackend(
        "http://catalog.test/api",
        retries=2,
        transport=httpx.MockTransport(handler),
        sleep=_no_sleep,
    )

    with pytest.raises(CatalogFetchError) as exc_info:
        asyncio.run(backend.fetch_product(1))

    assert exc_info.value.status_code == 0


def _build_session_factory() -> sessionmaker:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    db.add(CatalogProduct(id=1, name="Hambúrguer", price=Decimal("30.00"), composition_type="SELECTABLE"))
    db.add(CatalogProduct(id=201, name="Pão Brioche", price=Decimal("0")))
    db.add(CatalogProduct(id=202, name="Pão Australiano", price=Decimal("0")))
    db.add(CatalogProduct(id=5, name="Inativo", price=Decimal("1"), active=False))
    db.add(CatalogGroup(id=10, name="Pão", min_quantity=1, max_quantity=1))
    db.add(CatalogGroup(id=11, name="Adicionais", min_quantity=0, max_quantity=3))
    db.add(CatalogProductGroup(product_id=1, group_id=11, order_index=2))
    db.add(CatalogProductGroup(product_id=1, group_id=10, order_index=1))
    db.add(CatalogOption(id=102, group_id=10, product_id=202, price_increase=Decimal("10.00"), order_index=2))
    db.add(CatalogOption(id=101, group_id=10, product_id=201, order_index=1))
    db.add(CatalogOption(id=103, group_id=10, product_id=202, order_index=3, is_active=False))
    db.commit()
    db.close()
    return TestingSessionLocal


def test_sql_loaders_return_shallow_product_and_ordered_options():
    session_factory = _build_session_factory()
    db = session_factory()
    try:
        product = load_product(db, product_id=1)
        group = load_group_with_options(db, group_id=10)
    finally:
        db.close()

    assert [entry.name for entry in product.product_groups] == ["Pão", "Adicionais"]
    assert all(not entry.is_hydrated for entry in product.product_groups)
    assert product.requires_configuration
    assert [option.id for option in group.options] == [101, 102]
    assert group.options[1].product_name == "Pão Australiano"
    assert group.options[1].price_increase == Decimal("10.00")


def test_sql_backend_rejects_missing_or_inactive_entities():
    backend = SqlCatalogBackend(_build_session_factory())

    with pytest.raises(CatalogFetchError) as inactive:
        asyncio.run(backend.fetch_product(5))
    with pytest.raises(CatalogFetchError) as missing:
        asyncio.run(backend.fetch_group_with_options(77))

    assert inactive.value.status_code == 404
    assert missing.value.status_code == 404


def test_build_catalog_backend_selects_http_by_default():
    backend = build_catalog_backend("http", base_url="http://catalog.test/api", timeout=5, retries=2)

    assert isinstance(backend, HttpCatalogBackend)
    assert backend.retries == 2


def test_sql_backend_keeps_event_loop_responsive(monkeypatch):
    from configurator.services import sql_catalog
    from configurator.services.catalog_cache import CatalogCache

    def slow_load_product(_db, *, product_id):
        time.sleep(0.3)
        return Product(id=product_id, name=f"Produto {product_id}")

    monkeypatch.setattr(sql_catalog, "load_product", slow_load_product)
    cache = CatalogCache(SqlCatalogBackend(lambda: SimpleNamespace(close=lambda: None)))

    async def ticker(gaps):
        last = time.perf_counter()
        while len(gaps) < 20:
            await asyncio.sleep(0.01)
            now = time.perf_counter()
            gaps.append(now - last)
            last = now

    async def scenario():
        gaps = []
        products = await asyncio.gather(cache.get_product(1), cache.get_product(2), ticker(gaps))
        return products[:2], gaps

    products, gaps = asyncio.run(scenario())

    assert [product.id for product in products] == [1, 2]
    assert max(gaps) < 0.2
