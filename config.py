import logging
import os

# Security settings
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 8

# Durable storage
STORAGE_PATH = os.getenv("STORAGE_PATH", ".supermarket-storage.json")
TOKEN_KEY = "supermarket-auth-token"
USER_KEY = "supermarket-user"
CART_KEY = "supermarket-cart"

# Simulated latency (milliseconds)
API_MIN_DELAY_MS = int(os.getenv("API_MIN_DELAY_MS", 200))
API_MAX_DELAY_MS = int(os.getenv("API_MAX_DELAY_MS", 1000))
LOGIN_DELAY_MS = int(os.getenv("LOGIN_DELAY_MS", 800))
SEARCH_DEBOUNCE_MS = int(os.getenv("SEARCH_DEBOUNCE_MS", 300))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", 8000))


def setup_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
