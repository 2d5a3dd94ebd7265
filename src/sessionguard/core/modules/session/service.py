import asyncio
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

import structlog
from pymongo import DESCENDING, ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError, OperationFailure, PyMongoError

from sessionguard.core.core import Service
from sessionguard.core.modules.session.models import Session
from sessionguard.errors import DuplicateTokenError, NotFoundError
from sessionguard.utils import now

logger = structlog.get_logger(__name__)

INDEX_OPTIONS_CONFLICT = 85


class SessionService(Service):
    """Persistent session records keyed by token.

    Mutations that depend on the current validity flag are single conditional
    updates, so concurrent logouts never overwrite each other. ``last_activity``
    is only ever raised (``$max``), never lowered.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("sessions")
        self._sweep_task: asyncio.Task[None] | None = None

    @property
    def idle_timeout(self) -> timedelta:
        return timedelta(seconds=self.core.config.session_idle_timeout)

    async def on_start(self) -> None:
        """Create indexes and start the inactivity sweep."""
        # Unique index for token (for authentication lookups)
        await self._collection.create_index([("token", 1)], unique=True)
        # Compound index for listing and bulk invalidation by user
        await self._collection.create_index([("user_id", 1), ("is_valid", 1)])
        await self._ensure_ttl_index()

        interval = self.core.config.session_sweep_interval
        if interval > 0:
            self._sweep_task = asyncio.create_task(self._sweep_loop(interval))
            self._sweep_task.add_done_callback(_report_sweep_crash)
        logger.debug("session_service_started", sweep_interval=interval)

    async def on_stop(self) -> None:
        """Cancel the sweep task."""
        task, self._sweep_task = self._sweep_task, None
        # A task that already died was reported by its done callback
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def create_session(self, user_id: UUID, token: str, user_agent: str, ip_address: str) -> Session:
        """Store a new valid session for an issued token."""
        created_at = now()
        session = Session(
            user_id=user_id,
            token=token,
            user_agent=user_agent,
            ip_address=ip_address,
            last_activity=created_at,
            created_at=created_at,
        )
        try:
            await self._collection.insert_one(session.to_mongo())
        except DuplicateKeyError as e:
            raise DuplicateTokenError("Session for this token already exists") from e
        logger.info("session_created", session_id=session.id, user_id=user_id)
        return session

    async def find_active_by_token(self, token: str, user_id: UUID) -> Session:
        """Get a valid session matching both the token and its owner."""
        doc = await self._collection.find_one({"token": token, "user_id": user_id, "is_valid": True})
        if doc is None:
            raise NotFoundError("Session not found")
        return Session.model_validate(doc)

    async def touch(self, session: Session) -> Session:
        """Record activity on a session and return the stored record."""
        doc = await self._collection.find_one_and_update(
            {"_id": session.id},
            {"$max": {"last_activity": now()}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise NotFoundError("Session not found")
        return Session.model_validate(doc)

    async def invalidate(self, token: str) -> Session:
        """Mark the session for a token invalid.

        Invalidating an already invalid session returns it unchanged.
        """
        doc = await self._collection.find_one_and_update(
            {"token": token, "is_valid": True},
            {"$set": {"is_valid": False}, "$max": {"last_activity": now()}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is not None:
            session = Session.model_validate(doc)
            logger.info("session_invalidated", session_id=session.id, user_id=session.user_id)
            return session

        doc = await self._collection.find_one({"token": token})
        if doc is None:
            raise NotFoundError("Session not found")
        return Session.model_validate(doc)

    async def invalidate_all_for_user(self, user_id: UUID) -> int:
        """Invalidate every valid session of a user and return how many changed."""
        result = await self._collection.update_many(
            {"user_id": user_id, "is_valid": True},
            {"$set": {"is_valid": False}, "$max": {"last_activity": now()}},
        )
        logger.info("sessions_invalidated", user_id=user_id, count=result.modified_count)
        return result.modified_count

    async def list_active_for_user(self, user_id: UUID) -> list[Session]:
        """Get valid sessions of a user, most recently active first."""
        cursor = self._collection.find({"user_id": user_id, "is_valid": True}).sort("last_activity", DESCENDING)
        return await Session.list_cursor(cursor)

    async def delete_inactive_sessions(self, current_time: datetime | None = None) -> int:
        """Remove sessions idle for longer than the configured timeout."""
        cutoff = (current_time or now()) - self.idle_timeout
        result = await self._collection.delete_many({"last_activity": {"$lt": cutoff}})
        if result.deleted_count:
            logger.info("inactive_sessions_deleted", count=result.deleted_count)
        return result.deleted_count

    async def _ensure_ttl_index(self) -> None:
        """Create the TTL index, or update its expiry when the idle timeout changed."""
        ttl = self.core.config.session_idle_timeout
        try:
            await self._collection.create_index([("last_activity", 1)], expireAfterSeconds=ttl)
        except OperationFailure as e:
            if e.code != INDEX_OPTIONS_CONFLICT:
                raise
            await self.database.command(
                "collMod", self._collection.name, index={"keyPattern": {"last_activity": 1}, "expireAfterSeconds": ttl}
            )
            logger.info("session_ttl_index_updated", expire_after_seconds=ttl)

    async def _sweep_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.delete_inactive_sessions()
            except PyMongoError:
                logger.exception("inactive_sessions_sweep_failed")


def _report_sweep_crash(task: asyncio.Task[None]) -> None:
    if task.cancelled() or task.exception() is None:
        return
    task.get_loop().call_exception_handler(
        {"message": "Inactive session sweep crashed", "exception": task.exception(), "task": task}
    )
