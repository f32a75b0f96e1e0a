"""
In-memory mock data store.

Collections are plain lists of pydantic documents keyed by collection name
("product", "user", "sale", "forecast"). The helpers mirror a minimal document
database API so callers never touch the lists directly.
"""

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from schemas import ForecastPoint, Product, ProductForecast, Sale, SaleItem, User, utc_now

logger = logging.getLogger(__name__)

COLLECTIONS = ("product", "user", "sale", "forecast")


def _matches(doc: BaseModel, filter_dict: Optional[Dict[str, Any]]) -> bool:
    if not filter_dict:
        return True
    return all(getattr(doc, key, None) == value for key, value in filter_dict.items())


class MockDatabase:
    def __init__(self):
        self.collections: Dict[str, List[BaseModel]] = {name: [] for name in COLLECTIONS}

    @property
    def name(self) -> str:
        return "supermarket-mock"

    def list_collection_names(self) -> List[str]:
        return list(self.collections)

    def _collection(self, name: str) -> List[BaseModel]:
        try:
            return self.collections[name]
        except KeyError:
            raise KeyError(f"Unknown collection: {name}") from None

    def get_documents(self, collection: str, filter_dict: Optional[Dict[str, Any]] = None, limit: int = 0) -> List[BaseModel]:
        docs = [d for d in self._collection(collection) if _matches(d, filter_dict)]
        return docs[:limit] if limit else docs

    def find_one(self, collection: str, filter_dict: Dict[str, Any]) -> Optional[BaseModel]:
        docs = self.get_documents(collection, filter_dict, limit=1)
        return docs[0] if docs else None

    def create_document(self, collection: str, doc: BaseModel) -> str:
        self._collection(collection).append(doc)
        return getattr(doc, "id", "")

    def update_one(self, collection: str, filter_dict: Dict[str, Any], values: Dict[str, Any]) -> int:
        doc = self.find_one(collection, filter_dict)
        if doc is None:
            return 0
        for key, value in values.items():
            setattr(doc, key, value)
        return 1

    def delete_one(self, collection: str, filter_dict: Dict[str, Any]) -> int:
        docs = self._collection(collection)
        for index, doc in enumerate(docs):
            if _matches(doc, filter_dict):
                del docs[index]
                return 1
        return 0

    def count(self, collection: str) -> int:
        return len(self._collection(collection))

    def next_product_id(self) -> str:
        ids = [int(p.id) for p in self._collection("product") if p.id.isdigit()]
        return str(max(ids, default=0) + 1)


# Seed data

_PRODUCTS = [
    # id, name, category, price, stock, reorder level, supplier
    ("1", "Whole Milk 1L", "Dairy", 1.99, 120, 30, "Fresh Farms"),
    ("2", "Skimmed Milk 1L", "Dairy", 1.89, 18, 25, "Fresh Farms"),
    ("3", "Cheddar Cheese 200g", "Dairy", 3.49, 45, 15, "Dairy Delight"),
    ("4", "Greek Yogurt 500g", "Dairy", 2.79, 0, 10, "Dairy Delight"),
    ("5", "Sourdough Bread", "Bakery", 4.25, 22, 10, "Baker's Best"),
    ("6", "Croissant 4-pack", "Bakery", 3.99, 8, 12, "Baker's Best"),
    ("7", "Bananas 1kg", "Produce", 1.29, 200, 40, "Green Valley"),
    ("8", "Gala Apples 1kg", "Produce", 2.49, 75, 30, "Green Valley"),
    ("9", "Orange Juice 1L", "Beverages", 3.29, 60, 20, "Sunny Drinks"),
    ("10", "Sparkling Water 6x500ml", "Beverages", 4.99, 35, 15, "Sunny Drinks"),
    ("11", "Potato Chips 150g", "Snacks", 1.79, 90, 25, "Crunch Co"),
    ("12", "Milk Chocolate Bar 100g", "Snacks", 1.49, 12, 20, "Crunch Co"),
    ("13", "Dish Soap 500ml", "Household", 2.19, 40, 10, "CleanHome"),
    ("14", "Paper Towels 6 rolls", "Household", 6.49, 5, 8, "CleanHome"),
]

_USERS = [
    ("1", "Admin User", "admin@supermarket.com", "admin"),
    ("2", "Cashier User", "cashier@supermarket.com", "cashier"),
    ("3", "Staff User", "staff@supermarket.com", "staff"),
]

_SALES = [
    # id, days ago, cashier id, [(product id, qty)]
    ("sale1001", 3, "2", [("1", 4), ("7", 2), ("11", 3)]),
    ("sale1002", 2, "2", [("9", 2), ("5", 1)]),
    ("sale1003", 2, "1", [("1", 2), ("3", 1), ("12", 5)]),
    ("sale1004", 1, "2", [("10", 1), ("8", 3), ("1", 1)]),
    ("sale1005", 0, "2", [("13", 2), ("6", 1), ("11", 2)]),
]

_FORECASTS = {
    # product id -> predicted daily sales for the next seven days
    "1": [14, 16, 15, 18, 22, 25, 20],
    "2": [5, 6, 5, 7, 8, 9, 6],
    "4": [3, 4, 3, 4, 5, 6, 4],
    "6": [4, 4, 5, 5, 7, 8, 6],
    "9": [6, 7, 6, 8, 9, 11, 8],
    "12": [5, 5, 6, 6, 8, 9, 7],
}


def seed_database() -> MockDatabase:
    """Return a freshly populated store. Each call builds independent documents."""
    db = MockDatabase()
    now = utc_now()

    for pid, name, category, price, stock, reorder_level, supplier in _PRODUCTS:
        db.create_document("product", Product(
            id=pid,
            name=name,
            category=category,
            price=price,
            stock=stock,
            reorder_level=reorder_level,
            supplier=supplier,
            created_at=now - timedelta(days=30),
            updated_at=now - timedelta(days=30),
        ))

    for uid, name, email, role in _USERS:
        db.create_document("user", User(id=uid, name=name, email=email, role=role, created_at=now - timedelta(days=90)))

    for sale_id, days_ago, cashier_id, lines in _SALES:
        cashier = db.find_one("user", {"id": cashier_id})
        items = []
        for pid, qty in lines:
            product = db.find_one("product", {"id": pid})
            items.append(SaleItem(
                product_id=pid,
                product=product.model_copy(),
                quantity=qty,
                price=product.price,
                total=round(product.price * qty, 2),
            ))
        db.create_document("sale", Sale(
            id=sale_id,
            items=items,
            total_amount=round(sum(i.total for i in items), 2),
            created_at=now - timedelta(days=days_ago, hours=1),
            cashier_id=cashier.id,
            cashier_name=cashier.name,
        ))

    today = date.today()
    for pid, quantities in _FORECASTS.items():
        product = db.find_one("product", {"id": pid})
        db.create_document("forecast", ProductForecast(
            product_id=pid,
            product_name=product.name,
            current_stock=product.stock,
            reorder_level=product.reorder_level,
            predicted_sales=[
                ForecastPoint(date=(today + timedelta(days=offset + 1)).isoformat(), quantity=qty)
                for offset, qty in enumerate(quantities)
            ],
        ))

    logger.debug("Seeded mock database: %s", {name: db.count(name) for name in COLLECTIONS})
    return db
