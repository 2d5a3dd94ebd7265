"""Tests for the account service."""

from uuid import uuid4

import pytest

from sessionguard.errors import AuthenticationError, ConflictError, NotFoundError


@pytest.fixture
def users(core):
    return core.services.user


@pytest.mark.asyncio
async def test_create_user_hashes_password(database, users):
    user = await users.create_user("Alice", "a@x.com", "p1")

    stored = database.get_collection("users").documents[0]
    assert stored["_id"] == user.id
    assert stored["password_hash"] != "p1"
    assert stored["password_hash"].startswith("$2")
    assert user.last_login is None


@pytest.mark.asyncio
async def test_email_is_normalized_and_unique(users):
    await users.create_user("Alice", "A@X.com ", "p1")
    with pytest.raises(ConflictError, match="User already exists"):
        await users.create_user("Other", "a@x.com", "p2")


@pytest.mark.asyncio
async def test_authenticate(users):
    created = await users.create_user("Alice", "a@x.com", "p1")
    user = await users.authenticate("a@x.com", "p1")
    assert user.id == created.id


@pytest.mark.asyncio
@pytest.mark.parametrize(("email", "password"), [("a@x.com", "wrong"), ("nobody@x.com", "p1")])
async def test_authenticate_rejects_bad_credentials(users, email, password):
    await users.create_user("Alice", "a@x.com", "p1")
    with pytest.raises(AuthenticationError, match="Invalid email or password"):
        await users.authenticate(email, password)


@pytest.mark.asyncio
async def test_record_login(users, clock):
    created = await users.create_user("Alice", "a@x.com", "p1")
    user = await users.record_login(created.id)
    assert user.last_login == clock.current


@pytest.mark.asyncio
async def test_unknown_user(users):
    with pytest.raises(NotFoundError, match="User not found"):
        await users.get_user(uuid4())
    with pytest.raises(NotFoundError):
        await users.record_login(uuid4())


@pytest.mark.asyncio
async def test_password_longer_than_bcrypt_limit(users):
    password = "é" * 50  # 100 bytes in UTF-8
    created = await users.create_user("Alice", "a@x.com", password)

    user = await users.authenticate("a@x.com", password)
    assert user.id == created.id
