import logging
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

import config
from errors import EmptyCartError, InsufficientStockError, InvalidQuantityError
from schemas import ApiResponse, CartItem, CartSummary, Product, Sale

logger = logging.getLogger(__name__)

_cart_adapter = TypeAdapter(List[CartItem])


class CartManager:
    """Shopping cart for one billing session.

    Lines hold a copy of the product taken when it was added, so totals use the
    captured price and stock checks use the captured stock. Every mutation is
    written to durable storage under ``key``; rejected mutations leave both the
    lines and the stored snapshot unchanged.
    """

    def __init__(self, storage, key: str = config.CART_KEY):
        self.storage = storage
        self.key = key
        self._items: List[CartItem] = []
        self._loaded = False

    @property
    def items(self) -> List[CartItem]:
        return list(self._items)

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self._items)

    @property
    def total_amount(self) -> float:
        return sum(item.product.price * item.quantity for item in self._items)

    def summary(self) -> CartSummary:
        return CartSummary(items=self.items, total_items=self.total_items, total_amount=self.total_amount)

    def _find(self, product_id: str) -> Optional[CartItem]:
        for item in self._items:
            if item.product.id == product_id:
                return item
        return None

    # Persistence

    def snapshot(self) -> str:
        return _cart_adapter.dump_json(self._items, by_alias=True).decode("utf-8")

    def restore(self, data: str) -> None:
        self._items = _cart_adapter.validate_json(data)

    def _persist(self) -> None:
        self.storage.set_item(self.key, self.snapshot())

    def load(self) -> None:
        """Rehydrate from storage. Only the first call reads."""
        if self._loaded:
            return
        self._loaded = True
        saved = self.storage.get_item(self.key)
        if not saved:
            return
        try:
            self.restore(saved)
        except ValidationError:
            logger.exception("Failed to parse saved cart; starting empty")
            self._items = []

    # Mutations

    def add_to_cart(self, product: Product, quantity: int = 1) -> CartItem:
        if quantity < 1:
            raise InvalidQuantityError(quantity)
        if product.stock < quantity:
            logger.warning("Insufficient stock for %s: requested %d, have %d", product.id, quantity, product.stock)
            raise InsufficientStockError(product.name, product.stock)

        existing = self._find(product.id)
        if existing is not None:
            if product.stock < existing.quantity + quantity:
                logger.warning("Insufficient stock for %s: requested %d more, have %d in cart and %d in stock",
                               product.id, quantity, existing.quantity, product.stock)
                raise InsufficientStockError(product.name, product.stock)
            existing.quantity += quantity
            line = existing
        else:
            line = CartItem(product=product.model_copy(), quantity=quantity)
            self._items.append(line)

        self._persist()
        logger.info("Added to cart: %d x %s", quantity, product.name)
        return line

    def remove_from_cart(self, product_id: str) -> None:
        self._items = [item for item in self._items if item.product.id != product_id]
        self._persist()

    def update_quantity(self, product_id: str, quantity: int) -> None:
        if quantity < 1:
            self.remove_from_cart(product_id)
            return

        line = self._find(product_id)
        if line is None:
            return
        if line.product.stock < quantity:
            logger.warning("Insufficient stock for %s: requested %d, have %d", product_id, quantity, line.product.stock)
            raise InsufficientStockError(line.product.name, line.product.stock)

        line.quantity = quantity
        self._persist()

    def clear_cart(self) -> None:
        self._items = []
        self._persist()

    async def checkout(self, api) -> ApiResponse[Sale]:
        """Submit the cart as a sale; the cart is cleared only when the sale succeeds."""
        if not self._items:
            raise EmptyCartError()

        response = await api.create_sale(self.items)
        if response.success:
            self.clear_cart()
            logger.info("Checkout completed: sale %s", response.data.id)
        else:
            logger.error("Checkout failed: %s", response.error)
        return response
