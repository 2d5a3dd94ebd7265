"""Shared pytest fixtures.

MongoDB is replaced by a small in-memory collection double that understands
the queries and update operators the services issue.
"""

import copy
from collections.abc import AsyncIterator, Callable
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pymongo.errors import ConnectionFailure, DuplicateKeyError, OperationFailure

from sessionguard.app import App
from sessionguard.config import Config
from sessionguard.core.core import Core
from sessionguard.web.server import create_fastapi_app

TEST_SECRET = "test-signing-key"


def _matches(document: dict[str, Any], query: dict[str, Any]) -> bool:
    for key, condition in query.items():
        value = document.get(key)
        if isinstance(condition, dict):
            for operator, operand in condition.items():
                if operator != "$lt":
                    raise NotImplementedError(operator)
                if value is None or not value < operand:
                    return False
        elif value != condition:
            return False
    return True


def _apply_update(document: dict[str, Any], update: dict[str, Any]) -> bool:
    before = copy.deepcopy(document)
    for operator, fields in update.items():
        for key, value in fields.items():
            if operator == "$set":
                document[key] = value
            elif operator == "$max":
                if document.get(key) is None or value > document[key]:
                    document[key] = value
            else:
                raise NotImplementedError(operator)
    return document != before


class FakeCursor:
    def __init__(self, documents: list[dict[str, Any]]) -> None:
        self._documents = documents

    def sort(self, key: str, direction: int) -> "FakeCursor":
        self._documents = sorted(self._documents, key=lambda d: d[key], reverse=direction < 0)
        return self

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[dict[str, Any]]:
        for document in self._documents:
            yield copy.deepcopy(document)


class FakeCollection:
    def __init__(self, name: str) -> None:
        self.name = name
        self.documents: list[dict[str, Any]] = []
        self.indexes: list[tuple[list[tuple[str, int]], dict[str, Any]]] = []
        self._unique_fields = {"_id"}

    async def create_index(self, keys: list[tuple[str, int]], **kwargs: Any) -> str:
        for existing_keys, existing_options in self.indexes:
            if existing_keys == keys:
                if existing_options != kwargs:
                    raise OperationFailure("Index already exists with different options", code=85)
                return "_".join(f"{field}_{direction}" for field, direction in keys)
        self.indexes.append((keys, kwargs))
        if kwargs.get("unique") and len(keys) == 1:
            self._unique_fields.add(keys[0][0])
        return "_".join(f"{field}_{direction}" for field, direction in keys)

    async def insert_one(self, document: dict[str, Any]) -> SimpleNamespace:
        for field in self._unique_fields:
            if any(existing.get(field) == document.get(field) for existing in self.documents):
                raise DuplicateKeyError(f"E11000 duplicate key error collection: {self.name} index: {field}_1", 11000)
        self.documents.append(copy.deepcopy(document))
        return SimpleNamespace(inserted_id=document["_id"])

    async def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        document = self._first(query)
        return copy.deepcopy(document) if document is not None else None

    def find(self, query: dict[str, Any] | None = None) -> FakeCursor:
        return FakeCursor([d for d in self.documents if _matches(d, query or {})])

    async def find_one_and_update(
        self, query: dict[str, Any], update: dict[str, Any], return_document: bool = False
    ) -> dict[str, Any] | None:
        document = self._first(query)
        if document is None:
            return None
        before = copy.deepcopy(document)
        _apply_update(document, update)
        return copy.deepcopy(document) if return_document else before

    async def update_many(self, query: dict[str, Any], update: dict[str, Any]) -> SimpleNamespace:
        matched = [d for d in self.documents if _matches(d, query)]
        modified = sum(1 for d in matched if _apply_update(d, update))
        return SimpleNamespace(matched_count=len(matched), modified_count=modified)

    async def delete_many(self, query: dict[str, Any]) -> SimpleNamespace:
        kept = [d for d in self.documents if not _matches(d, query)]
        deleted = len(self.documents) - len(kept)
        self.documents = kept
        return SimpleNamespace(deleted_count=deleted)

    def _first(self, query: dict[str, Any]) -> dict[str, Any] | None:
        return next((d for d in self.documents if _matches(d, query)), None)


class FakeDatabase:
    name = "sessionguard_test"

    def __init__(self) -> None:
        self.collections: dict[str, FakeCollection] = {}
        self.ping_failures = 0
        self.pings = 0
        self.commands: list[tuple[str, Any, dict[str, Any]]] = []

    def get_collection(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection(name))

    async def command(self, name: str, value: Any = 1, **kwargs: Any) -> dict[str, Any]:
        if name == "collMod":
            self.commands.append((name, value, kwargs))
            collection = self.get_collection(value)
            pattern = list(kwargs["index"]["keyPattern"].items())
            for keys, options in collection.indexes:
                if keys == pattern:
                    options["expireAfterSeconds"] = kwargs["index"]["expireAfterSeconds"]
            return {"ok": 1.0}
        self.pings += 1
        if self.ping_failures:
            self.ping_failures -= 1
            raise ConnectionFailure("connection refused")
        return {"ok": 1.0}


class Clock:
    """Controllable replacement for ``sessionguard.utils.now``."""

    def __init__(self) -> None:
        self.current = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def config() -> Config:
    return Config(
        database_url="mongodb://localhost:27017/sessionguard_test",
        jwt_secret=TEST_SECRET,
        jwt_expires_in=3600,
        session_idle_timeout=3600,
        session_sweep_interval=0,
        db_connect_retries=2,
        db_connect_retry_delay=0,
    )


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> Clock:
    """Freeze the time seen by the session and user services."""
    fake_clock = Clock()
    monkeypatch.setattr("sessionguard.core.modules.session.service.now", fake_clock)
    monkeypatch.setattr("sessionguard.core.modules.user.service.now", fake_clock)
    return fake_clock


@pytest_asyncio.fixture
async def core(config: Config, database: FakeDatabase) -> AsyncIterator[Core]:
    core = Core(config, database)  # type: ignore[arg-type]
    async with core.lifespan():
        yield core


@pytest_asyncio.fixture
async def app(config: Config, database: FakeDatabase) -> AsyncIterator[App]:
    app = App(config, database)  # type: ignore[arg-type]
    async with app.lifespan():
        yield app


@pytest_asyncio.fixture
async def client(app: App, config: Config) -> AsyncIterator[AsyncClient]:
    fastapi_app = create_fastapi_app(app, config)
    transport = ASGITransport(app=fastapi_app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test", headers={"User-Agent": "pytest"}) as ac:
        yield ac


@pytest.fixture
def bearer() -> Callable[[str], dict[str, str]]:
    return lambda token: {"Authorization": f"Bearer {token}"}
