from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from sessionguard.core.db import MongoModel
from sessionguard.utils import now


class User(MongoModel):
    """User domain model with credentials."""

    name: str
    email: str
    password_hash: str  # bcrypt hash
    created_at: datetime = Field(default_factory=now)
    last_login: datetime | None = None


class UserView(BaseModel):
    """User account information (API representation)."""

    id: UUID = Field(..., description="User ID")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Email address used to log in")
    created_at: datetime = Field(..., description="Registration time")
    last_login: datetime | None = Field(None, description="Time of the most recent login")

    @classmethod
    def from_domain(cls, user: User) -> "UserView":
        """Create view model from domain model."""
        return cls(id=user.id, name=user.name, email=user.email, created_at=user.created_at, last_login=user.last_login)
