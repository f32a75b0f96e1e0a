import asyncio
import logging
from typing import Callable, Iterable, List, Optional

import config
from schemas import Product, ProductFilters

logger = logging.getLogger(__name__)

ALL = "all"


def search_products(products: Iterable[Product], query: str = "", category: Optional[str] = None,
                    supplier: Optional[str] = None) -> List[Product]:
    results = list(products)

    if query:
        needle = query.lower()
        results = [p for p in results if needle in p.name.lower() or needle in p.id.lower()]

    if category and category != ALL:
        results = [p for p in results if p.category == category]

    if supplier and supplier != ALL:
        results = [p for p in results if p.supplier == supplier]

    return results


def filter_products(products: Iterable[Product], filters: ProductFilters) -> List[Product]:
    results = search_products(products, filters.search, filters.category, filters.supplier)

    if filters.stock_status == "low":
        results = [p for p in results if p.stock <= p.reorder_level]
    elif filters.stock_status == "outOfStock":
        results = [p for p in results if p.stock == 0]

    if filters.sort_key:
        results.sort(key=lambda p: getattr(p, filters.sort_key), reverse=filters.descending)

    return results


def distinct_values(products: Iterable[Product], attr: str) -> List[str]:
    return list(dict.fromkeys(getattr(p, attr) for p in products))


class SearchDebouncer:
    """Delays a search until the query has been stable for ``delay`` seconds.

    Each submit cancels the search still waiting from the previous submit; the
    cancelled caller gets None back.
    """

    def __init__(self, search: Callable[[str], List[Product]], delay: float = config.SEARCH_DEBOUNCE_MS / 1000):
        self.search = search
        self.delay = delay
        self._pending: Optional[asyncio.Task] = None

    async def _run(self, query: str) -> List[Product]:
        await asyncio.sleep(self.delay)
        if not query.strip():
            return []
        return self.search(query)

    async def submit(self, query: str) -> Optional[List[Product]]:
        self.cancel()
        task = asyncio.ensure_future(self._run(query))
        self._pending = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task.cancelled():
            logger.debug("Search for %r superseded", query)
            return None
        return task.result()

    def cancel(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
