import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from pydantic import ValidationError

import config
from database import MockDatabase
from errors import InvalidCredentialsError
from schemas import LoginResult, User

logger = logging.getLogger(__name__)


def create_access_token(data: dict, secret_key: str = config.SECRET_KEY, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, secret_key, algorithm=config.ALGORITHM)


class AuthService:
    """Mock credential check plus a session persisted in durable storage.

    Any non-empty password is accepted for a known email. The session is the pair
    of storage keys TOKEN_KEY/USER_KEY; it exists iff a token is stored.
    """

    def __init__(self, db: MockDatabase, storage, login_delay: float = config.LOGIN_DELAY_MS / 1000,
                 secret_key: str = config.SECRET_KEY):
        self.db = db
        self.storage = storage
        self.login_delay = login_delay
        self.secret_key = secret_key

    def find_user_by_email(self, email: str) -> Optional[User]:
        wanted = email.strip().lower()
        for user in self.db.get_documents("user"):
            if user.email.lower() == wanted:
                return user
        return None

    async def login(self, email: str, password: str) -> LoginResult:
        await asyncio.sleep(self.login_delay)

        user = self.find_user_by_email(email or "")
        if user is None or not password:
            logger.warning("Rejected login for %r", email)
            raise InvalidCredentialsError()

        token = create_access_token({"sub": user.id, "ts": int(time.time() * 1000)}, self.secret_key)
        self.storage.set_item(config.TOKEN_KEY, token)
        self.storage.set_item(config.USER_KEY, user.model_dump_json(by_alias=True))
        logger.info("User %s logged in as %s", user.id, user.role)
        return LoginResult(user=user.model_copy(), token=token)

    def logout(self) -> None:
        self.storage.remove_item(config.TOKEN_KEY)
        self.storage.remove_item(config.USER_KEY)

    def get_token(self) -> Optional[str]:
        return self.storage.get_item(config.TOKEN_KEY)

    def is_authenticated(self) -> bool:
        return bool(self.get_token())

    def get_current_user(self) -> Optional[User]:
        raw = self.storage.get_item(config.USER_KEY)
        if not raw:
            return None
        try:
            return User.model_validate_json(raw)
        except ValidationError:
            logger.exception("Error parsing user data")
            return None

    def has_role(self, role: str) -> bool:
        user = self.get_current_user()
        return user is not None and user.role == role

    def is_admin(self) -> bool:
        return self.has_role("admin")

    def is_cashier(self) -> bool:
        return self.has_role("cashier")

    def is_staff(self) -> bool:
        return self.has_role("staff")

    def decode_token(self, token: str) -> Optional[str]:
        """Return the user id carried by ``token``, or None if it is invalid or expired."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[config.ALGORITHM])
        except JWTError:
            return None
        return payload.get("sub")

    def get_user(self, user_id: str) -> Optional[User]:
        return self.db.find_one("user", {"id": user_id})
