"""Session management models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from sessionguard.core.db import MongoModel
from sessionguard.utils import now

UNKNOWN_CLIENT = "unknown"


class ClientInfo(BaseModel):
    """Client metadata captured when a session is created."""

    user_agent: str = UNKNOWN_CLIENT
    ip_address: str = UNKNOWN_CLIENT


class Session(MongoModel):
    """Authenticated client context bound to one issued token.

    Indexed on token - unique, (user_id, is_valid), last_activity (TTL = idle timeout).
    """

    user_id: UUID
    token: str
    is_valid: bool = True
    user_agent: str = UNKNOWN_CLIENT
    ip_address: str = UNKNOWN_CLIENT
    last_activity: datetime = Field(default_factory=now)
    created_at: datetime = Field(default_factory=now)


class SessionView(BaseModel):
    """Session information (API representation, never exposes the token)."""

    id: UUID = Field(..., description="Session ID")
    user_agent: str = Field(..., description="User-Agent of the client that opened the session")
    ip_address: str = Field(..., description="Client address at session creation")
    last_activity: datetime = Field(..., description="Last authenticated request")
    created_at: datetime = Field(..., description="Session creation time")

    @classmethod
    def from_domain(cls, session: Session) -> "SessionView":
        """Create view model from domain model."""
        return cls(
            id=session.id,
            user_agent=session.user_agent,
            ip_address=session.ip_address,
            last_activity=session.last_activity,
            created_at=session.created_at,
        )


class SessionSummary(BaseModel):
    """Short session description returned on login and registration."""

    id: UUID
    user_agent: str
    last_activity: datetime

    @classmethod
    def from_domain(cls, session: Session) -> "SessionSummary":
        return cls(id=session.id, user_agent=session.user_agent, last_activity=session.last_activity)
