import logging
from typing import Optional

import config
from api import MockCommerceApi
from auth import AuthService
from cart import CartManager
from database import MockDatabase, seed_database
from schemas import AuthState, LoginResult
from search import SearchDebouncer
from storage import FileStorage, KeyValueStorage

logger = logging.getLogger(__name__)


class AuthContext:
    """Tracks the signed-in user for the running process."""

    def __init__(self, service: AuthService):
        self.service = service
        self.state = AuthState()

    def initialize(self) -> AuthState:
        try:
            self.state = AuthState(
                user=self.service.get_current_user(),
                token=self.service.get_token(),
                is_authenticated=self.service.is_authenticated(),
                is_loading=False,
            )
        except Exception:
            logger.exception("Failed to initialize authentication")
            self.state = AuthState(is_loading=False, error="Failed to initialize authentication")
        return self.state

    async def login(self, email: str, password: str) -> LoginResult:
        self.state = self.state.model_copy(update={"is_loading": True, "error": None})
        try:
            result = await self.service.login(email, password)
        except Exception as e:
            self.state = self.state.model_copy(update={"is_loading": False, "error": str(e) or "Login failed"})
            raise
        self.state = AuthState(user=result.user, token=result.token, is_authenticated=True, is_loading=False)
        logger.info("Welcome back, %s", result.user.name)
        return result

    def logout(self) -> None:
        self.service.logout()
        self.state = AuthState(is_loading=False)


class AppContext:
    """Services shared by every request, built once per process.

    ``startup`` hydrates the session and cart from durable storage; ``shutdown``
    cancels a pending search and flushes storage.
    """

    def __init__(self, storage: Optional[KeyValueStorage] = None, db: Optional[MockDatabase] = None,
                 api_delay: Optional[tuple] = None, login_delay: float = config.LOGIN_DELAY_MS / 1000,
                 search_delay: float = config.SEARCH_DEBOUNCE_MS / 1000):
        min_delay, max_delay = api_delay or (config.API_MIN_DELAY_MS / 1000, config.API_MAX_DELAY_MS / 1000)

        self.storage = storage if storage is not None else FileStorage(config.STORAGE_PATH)
        self.db = db if db is not None else seed_database()
        self.auth_service = AuthService(self.db, self.storage, login_delay=login_delay)
        self.auth = AuthContext(self.auth_service)
        self.api = MockCommerceApi(self.db, self.auth_service, min_delay=min_delay, max_delay=max_delay)
        self.cart = CartManager(self.storage)
        self.search = SearchDebouncer(lambda query: self.api.search_products(query).unwrap(), search_delay)

    def startup(self) -> None:
        self.auth.initialize()
        self.cart.load()
        logger.info("Started with %d products; session %s, cart %d items",
                    self.db.count("product"),
                    "active" if self.auth.state.is_authenticated else "none",
                    self.cart.total_items)

    def shutdown(self) -> None:
        self.search.cancel()
        self.storage.flush()
        logger.info("Shut down")
