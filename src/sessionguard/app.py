from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
from uuid import UUID

from pydantic import BaseModel
from pymongo.asynchronous.database import AsyncDatabase

from sessionguard.config import Config
from sessionguard.core.core import Core
from sessionguard.core.modules.access.models import AuthContext, AuthResult
from sessionguard.core.modules.session.models import ClientInfo, Session, SessionSummary, SessionView
from sessionguard.core.modules.user.models import User, UserView
from sessionguard.errors import ValidationError


class IssuedSession(BaseModel):
    """Token and session handed out on registration or login."""

    token: str
    user: UserView
    session: SessionSummary


class Dashboard(BaseModel):
    user: UserView
    current_session: SessionView
    active_sessions: list[SessionView]


class SessionList(BaseModel):
    sessions: list[SessionView]
    current_session_id: UUID


class App:
    """Facade for all application operations, composing the core services."""

    def __init__(self, config: Config, database: AsyncDatabase[dict[str, Any]] | None = None) -> None:
        self._core = Core(config, database)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    async def authenticate(self, token: str | None) -> AuthResult:
        """Run the session authenticator for a presented bearer token."""
        return await self._core.services.access.authenticate(token)

    async def register(self, name: str | None, email: str | None, password: str | None, client: ClientInfo) -> IssuedSession:
        """Create an account and open its first session."""
        if not (_present(name) and _present(email) and password):
            raise ValidationError("Please provide all required fields")
        user = await self._core.services.user.create_user(name, email, password)  # type: ignore[arg-type]
        return await self._issue_session(user, client)

    async def login(self, email: str | None, password: str | None, client: ClientInfo) -> IssuedSession:
        """Verify credentials and open a new session; earlier sessions stay valid."""
        if not (_present(email) and password):
            raise ValidationError("Please provide email and password")
        user = await self._core.services.user.authenticate(email, password)  # type: ignore[arg-type]
        user = await self._core.services.user.record_login(user.id)
        return await self._issue_session(user, client)

    async def get_dashboard(self, context: AuthContext) -> Dashboard:
        """Get the current user with the current and all active sessions."""
        user = await self._core.services.user.get_user(context.user_id)
        sessions = await self._core.services.session.list_active_for_user(context.user_id)
        return Dashboard(
            user=UserView.from_domain(user),
            current_session=SessionView.from_domain(context.session),
            active_sessions=[SessionView.from_domain(session) for session in sessions],
        )

    async def list_sessions(self, context: AuthContext) -> SessionList:
        """Get active sessions of the current user, most recently active first."""
        sessions = await self._core.services.session.list_active_for_user(context.user_id)
        return SessionList(
            sessions=[SessionView.from_domain(session) for session in sessions],
            current_session_id=context.session.id,
        )

    async def logout(self, context: AuthContext) -> Session:
        """Invalidate the session presented with the current request."""
        return await self._core.services.session.invalidate(context.token)

    async def logout_all(self, context: AuthContext) -> int:
        """Invalidate every valid session of the current user, the current one included."""
        return await self._core.services.session.invalidate_all_for_user(context.user_id)

    async def _issue_session(self, user: User, client: ClientInfo) -> IssuedSession:
        token = self._core.token_codec.issue(user.id, self._core.token_ttl)
        session = await self._core.services.session.create_session(
            user.id, token, client.user_agent, client.ip_address
        )
        return IssuedSession(token=token, user=UserView.from_domain(user), session=SessionSummary.from_domain(session))


def _present(value: str | None) -> bool:
    return value is not None and value.strip() != ""
