import asyncio

import pytest

from schemas import ProductFilters
from search import SearchDebouncer, distinct_values, filter_products, search_products


@pytest.fixture
def products(db):
    return db.get_documents("product")


def test_query_matches_name_or_id_case_insensitively(products, make_product):
    extra = make_product(pid="MILK-99", name="Loose Eggs")
    results = search_products(products + [extra], "MiLk")
    assert sorted(p.id for p in results) == ["1", "12", "2", "MILK-99"]


def test_category_and_supplier_are_exact(products):
    assert [p.id for p in search_products(products, category="Dairy")] == ["1", "2", "3", "4"]
    assert search_products(products, category="dairy") == []
    assert [p.id for p in search_products(products, supplier="CleanHome")] == ["13", "14"]
    assert len(search_products(products, category="all", supplier="all")) == len(products)


def test_filters_combine(products):
    results = search_products(products, "milk", category="Dairy", supplier="Fresh Farms")
    assert [p.id for p in results] == ["1", "2"]


def test_stock_status_filters(products):
    low = filter_products(products, ProductFilters(stock_status="low"))
    assert sorted(p.id for p in low) == ["12", "14", "2", "4", "6"]

    out = filter_products(products, ProductFilters(stock_status="outOfStock"))
    assert [p.id for p in out] == ["4"]


def test_sorting(products):
    by_price = filter_products(products, ProductFilters(sort_key="price", descending=True))
    assert by_price[0].id == "14"
    assert [p.price for p in by_price] == sorted((p.price for p in products), reverse=True)


def test_distinct_values_preserve_order(products):
    assert distinct_values(products, "supplier") == [
        "Fresh Farms", "Dairy Delight", "Baker's Best", "Green Valley", "Sunny Drinks", "Crunch Co", "CleanHome",
    ]


@pytest.mark.asyncio
async def test_debouncer_blank_query_returns_empty():
    calls = []
    debouncer = SearchDebouncer(lambda q: calls.append(q) or [], delay=0)
    assert await debouncer.submit("   ") == []
    assert calls == []


@pytest.mark.asyncio
async def test_debouncer_runs_latest_query_only():
    calls = []
    debouncer = SearchDebouncer(lambda q: calls.append(q) or [q], delay=0.05)

    first = asyncio.ensure_future(debouncer.submit("mil"))
    await asyncio.sleep(0)
    second = await debouncer.submit("milk")

    assert await first is None
    assert second == ["milk"]
    assert calls == ["milk"]


@pytest.mark.asyncio
async def test_debouncer_cancel():
    debouncer = SearchDebouncer(lambda q: [q], delay=10)
    pending = asyncio.ensure_future(debouncer.submit("bread"))
    await asyncio.sleep(0)

    debouncer.cancel()
    assert await pending is None
