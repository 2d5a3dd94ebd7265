"""Outcomes of request authentication."""

from dataclasses import dataclass
from uuid import UUID

from sessionguard.core.modules.session.models import Session
from sessionguard.errors import AuthFailure


@dataclass(frozen=True)
class AuthContext:
    """Identity of an admitted request, passed on to handlers."""

    user_id: UUID
    token: str
    session: Session


@dataclass(frozen=True)
class Admitted:
    context: AuthContext


@dataclass(frozen=True)
class Rejected:
    failure: AuthFailure


type AuthResult = Admitted | Rejected
