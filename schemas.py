"""
Data Schemas for Supermarket Management

Each Pydantic model describes a record held by the mock data store, a request body,
or a response shape. Attributes are snake_case; the JSON form uses camelCase aliases
(reorderLevel, totalAmount, ...) and both spellings are accepted on input.
"""

from datetime import datetime, timezone
from typing import Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, PrivateAttr
from pydantic.alias_generators import to_camel

from errors import ApiError, ErrorKind

T = TypeVar("T")

Role = Literal["admin", "cashier", "staff"]
ROLES = ("admin", "cashier", "staff")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class User(CamelModel):
    id: str
    name: str
    email: EmailStr
    role: Role = Field("cashier", description="user role: admin, cashier, staff")
    created_at: datetime = Field(default_factory=utc_now)


class Product(CamelModel):
    id: str
    name: str
    category: str
    price: float = Field(..., ge=0)
    stock: int = Field(0, ge=0)
    reorder_level: int = Field(0, ge=0)
    supplier: str
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ProductCreate(CamelModel):
    name: str
    category: str
    price: float = Field(..., ge=0)
    stock: int = Field(0, ge=0)
    reorder_level: int = Field(0, ge=0)
    supplier: str


class ProductUpdate(CamelModel):
    name: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    reorder_level: Optional[int] = Field(None, ge=0)
    supplier: Optional[str] = None


class ProductFilters(CamelModel):
    search: str = ""
    category: str = "all"
    supplier: str = "all"
    stock_status: Literal["all", "low", "outOfStock"] = "all"
    sort_key: Optional[Literal["id", "name", "category", "price", "stock", "reorder_level", "supplier"]] = None
    descending: bool = False


class CartItem(CamelModel):
    product: Product
    quantity: int = Field(..., gt=0)


class CartSummary(CamelModel):
    items: List[CartItem]
    total_items: int
    total_amount: float


class SaleItem(CamelModel):
    product_id: str
    product: Product
    quantity: int = Field(..., gt=0)
    price: float
    total: float


class SaleCreate(CamelModel):
    items: List[SaleItem]
    total_amount: Optional[float] = None


class Sale(CamelModel):
    id: str
    items: List[SaleItem]
    total_amount: float
    created_at: datetime = Field(default_factory=utc_now)
    cashier_id: str = ""
    cashier_name: str = ""


class LoginResult(CamelModel):
    user: User
    token: str


class AuthState(CamelModel):
    user: Optional[User] = None
    token: Optional[str] = None
    is_authenticated: bool = False
    is_loading: bool = True
    error: Optional[str] = None


class ForecastPoint(CamelModel):
    date: str
    quantity: int


class ProductForecast(CamelModel):
    product_id: str
    product_name: str
    current_stock: int
    reorder_level: int
    predicted_sales: List[ForecastPoint]
    recommended_purchase: int = 0


class DashboardStats(CamelModel):
    total_products: int
    total_sales: int
    total_revenue: float
    low_stock_count: int


class BestSellingProduct(CamelModel):
    id: str
    name: str
    category: str
    quantity_sold: int
    revenue: float


class RecentSale(CamelModel):
    id: str
    date: datetime
    items: int
    amount: float
    cashier_name: str


class StockAlert(CamelModel):
    id: str
    name: str
    current_stock: int
    reorder_level: int
    supplier: str
    status: Literal["low", "outOfStock"]


class ApiResponse(BaseModel, Generic[T]):
    """Uniform envelope returned by every facade call.

    Serializes to exactly ``{success, data?, error?, message?}``. The error kind
    is kept as a private attribute so callers can branch on it without changing
    the wire shape.
    """

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    message: Optional[str] = None

    _kind: Optional[ErrorKind] = PrivateAttr(default=None)

    @classmethod
    def ok(cls, data=None, message: Optional[str] = None):
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, error: str, kind: ErrorKind = ErrorKind.INTERNAL):
        response = cls(success=False, error=error)
        response._kind = kind
        return response

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self._kind

    def unwrap(self):
        if not self.success:
            raise ApiError(self._kind or ErrorKind.INTERNAL, self.error or "Operation failed")
        return self.data

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
