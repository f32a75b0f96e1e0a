import enum


class ErrorKind(str, enum.Enum):
    NOT_FOUND = "NOT_FOUND"
    INVALID_REQUEST = "INVALID_REQUEST"
    INTERNAL = "INTERNAL"


class SupermarketError(Exception):
    """Base class for errors raised by the supermarket services."""


class InvalidCredentialsError(SupermarketError):
    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class CartError(SupermarketError):
    """Rejected cart mutation. The cart is left unchanged."""


class InsufficientStockError(CartError):
    def __init__(self, product_name: str, available: int):
        self.product_name = product_name
        self.available = available
        super().__init__(f"Only {available} units available")


class InvalidQuantityError(CartError):
    def __init__(self, quantity: int):
        self.quantity = quantity
        super().__init__(f"Quantity must be at least 1, got {quantity}")


class EmptyCartError(CartError):
    def __init__(self):
        super().__init__("Add products to the cart before checkout")


class ApiError(SupermarketError):
    """Raised when unwrapping a failed response envelope."""

    def __init__(self, kind: ErrorKind, message: str):
        self.kind = kind
        super().__init__(message)
