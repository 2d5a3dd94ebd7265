from typing import Any
from uuid import UUID

import bcrypt
import structlog
from pymongo import ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from sessionguard.core.core import Service
from sessionguard.core.modules.user.models import User
from sessionguard.errors import AuthenticationError, ConflictError, NotFoundError
from sessionguard.utils import now

logger = structlog.get_logger(__name__)

BCRYPT_MAX_BYTES = 72


class UserService(Service):
    """Manages user accounts and credential checks.

    Users are read from the database on every call; nothing is cached in
    process so several workers can serve the same collection.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("users")

    async def on_start(self) -> None:
        """Create indexes on startup."""
        await self._collection.create_index([("email", 1)], unique=True)

    async def get_user(self, user_id: UUID) -> User:
        """Get user by ID."""
        user = User.from_mongo(await self._collection.find_one({"_id": user_id}))
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def find_user_by_email(self, email: str) -> User | None:
        return User.from_mongo(await self._collection.find_one({"email": normalize_email(email)}))

    async def create_user(self, name: str, email: str, password: str) -> User:
        """Create user with hashed password."""
        email = normalize_email(email)
        if await self.find_user_by_email(email) is not None:
            raise ConflictError("User already exists")

        password_hash = bcrypt.hashpw(password_bytes(password), bcrypt.gensalt()).decode("utf-8")
        user = User(name=name.strip(), email=email, password_hash=password_hash)
        try:
            await self._collection.insert_one(user.to_mongo())
        except DuplicateKeyError as e:
            # Lost a race with a concurrent registration for the same email
            raise ConflictError("User already exists") from e
        logger.info("user_created", user_id=user.id)
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """Return the user owning these credentials.

        Raises:
            AuthenticationError: unknown email or wrong password (same message for both)
        """
        user = await self.find_user_by_email(email)
        if user is None or not bcrypt.checkpw(password_bytes(password), user.password_hash.encode("utf-8")):
            raise AuthenticationError("Invalid email or password")
        return user

    async def record_login(self, user_id: UUID) -> User:
        """Set the last login time of a user."""
        doc = await self._collection.find_one_and_update(
            {"_id": user_id},
            {"$set": {"last_login": now()}},
            return_document=ReturnDocument.AFTER,
        )
        user = User.from_mongo(doc)
        if user is None:
            raise NotFoundError("User not found")
        return user


def normalize_email(email: str) -> str:
    return email.strip().lower()


def password_bytes(password: str) -> bytes:
    """Encode a password for bcrypt, which only uses the first 72 bytes."""
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]
