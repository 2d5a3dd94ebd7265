from __future__ import annotations

import asyncio
import importlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import TYPE_CHECKING, Any, cast
from urllib.parse import urlparse

import structlog
from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

from sessionguard.config import Config
from sessionguard.core.modules.token.codec import TokenCodec
from sessionguard.errors import DatabaseUnavailableError

if TYPE_CHECKING:
    from sessionguard.core.modules.access.service import AccessService
    from sessionguard.core.modules.session.service import SessionService
    from sessionguard.core.modules.user.service import UserService

logger = structlog.get_logger(__name__)


class Service:
    """Base class for services with direct database access."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self.database = database
        self._core: Core | None = None

    async def on_start(self) -> None:
        """Initialize service on application startup."""

    async def on_stop(self) -> None:
        """Cleanup service on application shutdown."""

    @property
    def core(self) -> Core:
        """Get the core application context."""
        if self._core is None:
            raise RuntimeError("Core not set for service")
        return self._core

    def set_core(self, core: Core) -> None:
        """Set the core application context."""
        self._core = core


class Services:
    """Service registry that automatically discovers and initializes services."""

    user: UserService
    session: SessionService
    access: AccessService

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        """Initialize all services automatically using service configuration."""
        self._services: list[Service] = []
        self._database = database

        # Service configuration: (attribute_name, module_path, class_name)
        # Started in this order, stopped in reverse
        service_configs = [
            ("user", "sessionguard.core.modules.user.service", "UserService"),
            ("session", "sessionguard.core.modules.session.service", "SessionService"),
            ("access", "sessionguard.core.modules.access.service", "AccessService"),
        ]

        for attr_name, module_path, class_name in service_configs:
            module = importlib.import_module(module_path)
            service_class = cast(type[Service], getattr(module, class_name))
            service_instance = service_class(database)
            setattr(self, attr_name, service_instance)
            self._services.append(service_instance)

    def set_core(self, core: Core) -> None:
        """Set core reference for all services."""
        for service in self._services:
            service.set_core(core)

    async def start_all(self) -> None:
        """Start all services that have startup logic."""
        for service in self._services:
            await service.on_start()

    async def stop_all(self) -> None:
        """Stop all services that have cleanup logic."""
        for service in reversed(self._services):
            await service.on_stop()


class Core:
    """Container providing config, database, token codec and all service instances.

    A database handle can be injected for tests; otherwise a MongoDB client is
    created from ``config.database_url`` and owned by the core.
    """

    config: Config
    mongo_client: AsyncMongoClient[dict[str, Any]] | None
    database: AsyncDatabase[dict[str, Any]]
    token_codec: TokenCodec
    services: Services

    def __init__(self, config: Config, database: AsyncDatabase[dict[str, Any]] | None = None) -> None:
        self.config = config
        if database is None:
            self.mongo_client = AsyncMongoClient(config.database_url, uuidRepresentation="standard", tz_aware=True)
            database = self.mongo_client.get_database(urlparse(config.database_url).path[1:])
        else:
            self.mongo_client = None
        self.database = database
        self.token_codec = TokenCodec(config.jwt_secret)
        self.services = Services(self.database)
        self.services.set_core(self)

    @property
    def token_ttl(self) -> timedelta:
        return timedelta(seconds=self.config.jwt_expires_in)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Manage application lifecycle - startup and shutdown."""
        await self.on_start()
        try:
            yield
        finally:
            await self.on_stop()

    async def on_start(self) -> None:
        """Wait for the database, then start all services."""
        await self.wait_for_database()
        await self.services.start_all()

    async def on_stop(self) -> None:
        """Stop services and close MongoDB connection on shutdown."""
        await self.services.stop_all()
        if self.mongo_client is not None:
            await self.mongo_client.aclose()

    async def wait_for_database(self) -> None:
        """Ping the database with a bounded number of fixed-delay retries.

        Raises:
            DatabaseUnavailableError: every attempt failed
        """
        attempts = self.config.db_connect_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                await self.database.command("ping")
            except PyMongoError as e:
                logger.warning("database_connect_failed", attempt=attempt, attempts=attempts, error=str(e))
                if attempt < attempts:
                    await asyncio.sleep(self.config.db_connect_retry_delay)
            else:
                logger.info("database_connected", database=self.database.name)
                return
        raise DatabaseUnavailableError(f"Database unreachable after {attempts} attempts")
