"""
Commerce API facade.

``CommerceApi`` declares one coroutine per logical backend operation so a real
network client can stand in for the mock later. ``MockCommerceApi`` serves them
from the in-memory store after a simulated network delay and always answers with
an ``ApiResponse`` envelope: expected failures (unknown ids, bad payloads) come
back as ``success=False``; unexpected faults are caught at the boundary, logged
and converted to the same shape.
"""

import asyncio
import logging
import random
import re
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Callable, List, Optional, Tuple

from pydantic import ValidationError

import config
from auth import AuthService
from database import MockDatabase
from errors import ErrorKind
from schemas import (
    ApiResponse,
    BestSellingProduct,
    CartItem,
    DashboardStats,
    Product,
    ProductCreate,
    ProductFilters,
    ProductForecast,
    ProductUpdate,
    RecentSale,
    Sale,
    SaleCreate,
    SaleItem,
    StockAlert,
    utc_now,
)
from search import distinct_values, filter_products, search_products

logger = logging.getLogger(__name__)

DASHBOARD_LIMIT = 5
_PRODUCT_ROUTE = re.compile(r"^/products/(?P<id>[^/]+)$")


class CommerceApi(ABC):
    """Backend operations used by the billing, inventory, dashboard and insights views."""

    @abstractmethod
    async def list_products(self) -> ApiResponse[List[Product]]:
        raise NotImplementedError

    @abstractmethod
    async def get_product(self, product_id: str) -> ApiResponse[Product]:
        raise NotImplementedError

    @abstractmethod
    async def create_product(self, product: ProductCreate) -> ApiResponse[Product]:
        raise NotImplementedError

    @abstractmethod
    async def update_product(self, product_id: str, update: ProductUpdate) -> ApiResponse[Product]:
        raise NotImplementedError

    @abstractmethod
    async def delete_product(self, product_id: str) -> ApiResponse[None]:
        raise NotImplementedError

    @abstractmethod
    async def get_dashboard_stats(self) -> ApiResponse[DashboardStats]:
        raise NotImplementedError

    @abstractmethod
    async def get_best_selling_products(self) -> ApiResponse[List[BestSellingProduct]]:
        raise NotImplementedError

    @abstractmethod
    async def get_stock_alerts(self) -> ApiResponse[List[StockAlert]]:
        raise NotImplementedError

    @abstractmethod
    async def get_recent_sales(self) -> ApiResponse[List[RecentSale]]:
        raise NotImplementedError

    @abstractmethod
    async def get_product_forecasts(self) -> ApiResponse[List[ProductForecast]]:
        raise NotImplementedError

    @abstractmethod
    async def get_product_forecast(self, product_id: str) -> ApiResponse[ProductForecast]:
        raise NotImplementedError

    @abstractmethod
    async def create_sale(self, items: List[CartItem]) -> ApiResponse[Sale]:
        raise NotImplementedError


def build_sale_items(items: List[CartItem]) -> List[SaleItem]:
    """Turn cart lines into sale lines using the prices captured in the cart."""
    return [
        SaleItem(
            product_id=item.product.id,
            product=item.product.model_copy(),
            quantity=item.quantity,
            price=item.product.price,
            total=round(item.product.price * item.quantity, 2),
        )
        for item in items
    ]


class MockCommerceApi(CommerceApi):
    def __init__(self, db: MockDatabase, auth: AuthService,
                 min_delay: float = config.API_MIN_DELAY_MS / 1000,
                 max_delay: float = config.API_MAX_DELAY_MS / 1000,
                 rng: Optional[random.Random] = None):
        self.db = db
        self.auth = auth
        self.min_delay = min_delay
        self.max_delay = max(min_delay, max_delay)
        self.rng = rng or random.Random()

    # Transport simulation

    async def _simulate_latency(self) -> None:
        await asyncio.sleep(self.rng.uniform(self.min_delay, self.max_delay))

    async def _call(self, handler: Callable[..., ApiResponse], *args) -> ApiResponse:
        await self._simulate_latency()
        try:
            return handler(*args)
        except ValidationError as e:
            logger.warning("Rejected payload for %s: %s", handler.__name__, e)
            return ApiResponse.fail(str(e), ErrorKind.INVALID_REQUEST)
        except Exception as e:
            logger.exception("Unexpected error in %s", handler.__name__)
            return ApiResponse.fail(str(e) or "An unknown error occurred", ErrorKind.INTERNAL)

    async def invoke(self, endpoint: str, method: str = "GET", payload: Optional[dict] = None) -> ApiResponse:
        """Dispatch a logical route string to the matching operation."""
        method = method.upper()
        resolved = self._resolve(endpoint, method, payload)
        if resolved is None:
            return await self._call(self._invalid_endpoint)
        return await self._call(*resolved)

    def _resolve(self, endpoint: str, method: str, payload: Optional[dict]) -> Optional[Tuple[Callable[..., ApiResponse], ...]]:
        routes = {
            "/dashboard/stats": self._dashboard_stats,
            "/dashboard/best-selling": self._best_selling_products,
            "/dashboard/stock-alerts": self._stock_alerts,
            "/dashboard/recent-sales": self._recent_sales,
            "/ai/forecasts": self._product_forecasts,
        }
        if endpoint in routes:
            return (routes[endpoint],) if method == "GET" else (self._operation_failed,)

        if endpoint == "/products":
            if method == "GET":
                return (self._list_products,)
            if method == "POST" and payload:
                return (self._create_product_payload, payload)
            return (self._operation_failed,)

        if endpoint == "/ai/forecast":
            if payload and payload.get("productId"):
                return (self._product_forecast, payload["productId"])
            return (self._operation_failed,)

        if endpoint == "/sales":
            if method == "POST" and payload:
                return (self._create_sale_payload, payload)
            return (self._operation_failed,)

        match = _PRODUCT_ROUTE.match(endpoint)
        if match:
            product_id = match.group("id")
            if method == "GET":
                return (self._get_product, product_id)
            if method == "PUT" and payload:
                return (self._update_product_payload, product_id, payload)
            if method == "DELETE":
                return (self._delete_product, product_id)
            return (self._operation_failed,)

        return None

    @staticmethod
    def _invalid_endpoint() -> ApiResponse:
        return ApiResponse.fail("Invalid endpoint", ErrorKind.NOT_FOUND)

    @staticmethod
    def _operation_failed() -> ApiResponse:
        return ApiResponse.fail("Operation failed", ErrorKind.INVALID_REQUEST)

    # Typed operations

    async def list_products(self) -> ApiResponse[List[Product]]:
        return await self._call(self._list_products)

    async def get_product(self, product_id: str) -> ApiResponse[Product]:
        return await self._call(self._get_product, product_id)

    async def create_product(self, product: ProductCreate) -> ApiResponse[Product]:
        return await self._call(self._create_product, product)

    async def update_product(self, product_id: str, update: ProductUpdate) -> ApiResponse[Product]:
        return await self._call(self._update_product, product_id, update)

    async def delete_product(self, product_id: str) -> ApiResponse[None]:
        return await self._call(self._delete_product, product_id)

    async def get_dashboard_stats(self) -> ApiResponse[DashboardStats]:
        return await self._call(self._dashboard_stats)

    async def get_best_selling_products(self) -> ApiResponse[List[BestSellingProduct]]:
        return await self._call(self._best_selling_products)

    async def get_stock_alerts(self) -> ApiResponse[List[StockAlert]]:
        return await self._call(self._stock_alerts)

    async def get_recent_sales(self) -> ApiResponse[List[RecentSale]]:
        return await self._call(self._recent_sales)

    async def get_product_forecasts(self) -> ApiResponse[List[ProductForecast]]:
        return await self._call(self._product_forecasts)

    async def get_product_forecast(self, product_id: str) -> ApiResponse[ProductForecast]:
        return await self._call(self._product_forecast, product_id)

    async def create_sale(self, items: List[CartItem]) -> ApiResponse[Sale]:
        sale_items = build_sale_items(items)
        return await self._call(self._create_sale, SaleCreate(items=sale_items))

    # Synchronous helpers over the product collection

    def search_products(self, query: str = "", category: Optional[str] = None,
                        supplier: Optional[str] = None) -> ApiResponse[List[Product]]:
        results = search_products(self._products(), query, category, supplier)
        return ApiResponse[List[Product]].ok(results)

    def filter_products(self, filters: ProductFilters) -> ApiResponse[List[Product]]:
        return ApiResponse[List[Product]].ok(filter_products(self._products(), filters))

    def get_product_categories(self) -> ApiResponse[List[str]]:
        return ApiResponse[List[str]].ok(distinct_values(self.db.get_documents("product"), "category"))

    def get_product_suppliers(self) -> ApiResponse[List[str]]:
        return ApiResponse[List[str]].ok(distinct_values(self.db.get_documents("product"), "supplier"))

    # Handlers

    def _products(self) -> List[Product]:
        return [p.model_copy() for p in self.db.get_documents("product")]

    def _list_products(self) -> ApiResponse[List[Product]]:
        return ApiResponse[List[Product]].ok(self._products())

    def _get_product(self, product_id: str) -> ApiResponse[Product]:
        product = self.db.find_one("product", {"id": product_id})
        if product is None:
            return ApiResponse[Product].fail("Product not found", ErrorKind.NOT_FOUND)
        return ApiResponse[Product].ok(product.model_copy())

    def _create_product_payload(self, payload: dict) -> ApiResponse[Product]:
        return self._create_product(ProductCreate.model_validate(payload))

    def _create_product(self, data: ProductCreate) -> ApiResponse[Product]:
        now = utc_now()
        product = Product(id=self.db.next_product_id(), created_at=now, updated_at=now, **data.model_dump())
        self.db.create_document("product", product)
        logger.info("Created product %s (%s)", product.id, product.name)
        return ApiResponse[Product].ok(product.model_copy(), message="Product added successfully")

    def _update_product_payload(self, product_id: str, payload: dict) -> ApiResponse[Product]:
        return self._update_product(product_id, ProductUpdate.model_validate(payload))

    def _update_product(self, product_id: str, update: ProductUpdate) -> ApiResponse[Product]:
        values = update.model_dump(exclude_none=True)
        values["updated_at"] = utc_now()
        if not self.db.update_one("product", {"id": product_id}, values):
            return ApiResponse[Product].fail("Product not found", ErrorKind.NOT_FOUND)
        product = self.db.find_one("product", {"id": product_id})
        logger.info("Updated product %s: %s", product_id, sorted(values))
        return ApiResponse[Product].ok(product.model_copy(), message="Product updated successfully")

    def _delete_product(self, product_id: str) -> ApiResponse[None]:
        if not self.db.delete_one("product", {"id": product_id}):
            return ApiResponse[None].fail("Product not found", ErrorKind.NOT_FOUND)
        logger.info("Deleted product %s", product_id)
        return ApiResponse[None].ok(message="Product deleted successfully")

    def _dashboard_stats(self) -> ApiResponse[DashboardStats]:
        products = self.db.get_documents("product")
        sales = self.db.get_documents("sale")
        stats = DashboardStats(
            total_products=len(products),
            total_sales=len(sales),
            total_revenue=round(sum(s.total_amount for s in sales), 2),
            low_stock_count=sum(1 for p in products if p.stock <= p.reorder_level),
        )
        return ApiResponse[DashboardStats].ok(stats)

    def _best_selling_products(self) -> ApiResponse[List[BestSellingProduct]]:
        totals: "OrderedDict[str, BestSellingProduct]" = OrderedDict()
        for sale in self.db.get_documents("sale"):
            for item in sale.items:
                entry = totals.get(item.product_id)
                if entry is None:
                    entry = totals[item.product_id] = BestSellingProduct(
                        id=item.product_id,
                        name=item.product.name,
                        category=item.product.category,
                        quantity_sold=0,
                        revenue=0.0,
                    )
                entry.quantity_sold += item.quantity
                entry.revenue = round(entry.revenue + item.total, 2)
        ranked = sorted(totals.values(), key=lambda e: e.quantity_sold, reverse=True)
        return ApiResponse[List[BestSellingProduct]].ok(ranked[:DASHBOARD_LIMIT])

    def _stock_alerts(self) -> ApiResponse[List[StockAlert]]:
        alerts = [
            StockAlert(
                id=p.id,
                name=p.name,
                current_stock=p.stock,
                reorder_level=p.reorder_level,
                supplier=p.supplier,
                status="outOfStock" if p.stock == 0 else "low",
            )
            for p in self.db.get_documents("product")
            if p.stock <= p.reorder_level
        ]
        alerts.sort(key=lambda a: a.current_stock)
        return ApiResponse[List[StockAlert]].ok(alerts)

    def _recent_sales(self) -> ApiResponse[List[RecentSale]]:
        sales = sorted(self.db.get_documents("sale"), key=lambda s: s.created_at, reverse=True)
        recent = [
            RecentSale(
                id=s.id,
                date=s.created_at,
                items=len(s.items),
                amount=s.total_amount,
                cashier_name=s.cashier_name,
            )
            for s in sales[:DASHBOARD_LIMIT]
        ]
        return ApiResponse[List[RecentSale]].ok(recent)

    def _refresh_forecast(self, forecast: ProductForecast) -> ProductForecast:
        product = self.db.find_one("product", {"id": forecast.product_id})
        current_stock = product.stock if product else forecast.current_stock
        reorder_level = product.reorder_level if product else forecast.reorder_level
        predicted = sum(point.quantity for point in forecast.predicted_sales)
        return forecast.model_copy(update={
            "current_stock": current_stock,
            "reorder_level": reorder_level,
            "recommended_purchase": max(0, predicted + reorder_level - current_stock),
        })

    def _product_forecasts(self) -> ApiResponse[List[ProductForecast]]:
        forecasts = [self._refresh_forecast(f) for f in self.db.get_documents("forecast")]
        return ApiResponse[List[ProductForecast]].ok(forecasts)

    def _product_forecast(self, product_id: str) -> ApiResponse[ProductForecast]:
        forecast = self.db.find_one("forecast", {"product_id": product_id})
        if forecast is None:
            return ApiResponse[ProductForecast].fail("Forecast not found", ErrorKind.NOT_FOUND)
        return ApiResponse[ProductForecast].ok(self._refresh_forecast(forecast))

    def _create_sale_payload(self, payload: dict) -> ApiResponse[Sale]:
        return self._create_sale(SaleCreate.model_validate(payload))

    def _next_sale_id(self) -> str:
        stamp = int(time.time() * 1000)
        while self.db.find_one("sale", {"id": f"sale{stamp}"}) is not None:
            stamp += 1
        return f"sale{stamp}"

    def _create_sale(self, data: SaleCreate) -> ApiResponse[Sale]:
        now = utc_now()
        items = [item.model_copy(update={"total": round(item.price * item.quantity, 2)}) for item in data.items]
        for item in items:
            product = self.db.find_one("product", {"id": item.product_id})
            if product is None:
                logger.warning("Sale line for unknown product %s; stock not adjusted", item.product_id)
                continue
            if item.quantity > product.stock:
                logger.warning("Overselling product %s: sold %d with %d in stock", product.id, item.quantity, product.stock)
            product.stock = max(0, product.stock - item.quantity)
            product.updated_at = now

        cashier = self.auth.get_current_user()
        sale = Sale(
            id=self._next_sale_id(),
            items=items,
            total_amount=round(sum(item.total for item in items), 2),
            created_at=now,
            cashier_id=cashier.id if cashier else "",
            cashier_name=cashier.name if cashier else "",
        )
        self.db.create_document("sale", sale)
        logger.info("Recorded sale %s: %d lines, total %.2f", sale.id, len(sale.items), sale.total_amount)
        return ApiResponse[Sale].ok(sale.model_copy(), message="Sale completed successfully")
