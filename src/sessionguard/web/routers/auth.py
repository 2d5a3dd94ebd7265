from datetime import datetime
from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel, Field

from sessionguard.app import IssuedSession
from sessionguard.web.deps import AppDep, AuthContextDep, ClientInfoDep
from sessionguard.web.openapi import ErrorResponse, MessageResponse, SuccessResponse

router = APIRouter(tags=["auth"])


class RegisterRequest(BaseModel):
    """Registration request. Missing fields are reported as a validation error."""

    name: str | None = Field(None, description="Display name")
    email: str | None = Field(None, description="Email address used to log in")
    password: str | None = Field(None, description="Password")


class LoginRequest(BaseModel):
    """Authentication request."""

    email: str | None = Field(None, description="Email address")
    password: str | None = Field(None, description="Password")


class TerminatedSession(BaseModel):
    id: UUID = Field(..., description="ID of the invalidated session")
    last_activity: datetime = Field(..., description="Time of invalidation")


class LogoutData(BaseModel):
    session: TerminatedSession


class LogoutAllData(BaseModel):
    sessions_terminated: int = Field(..., description="Number of sessions invalidated by this call", ge=0)


@router.post(
    "/register",
    summary="Register user",
    description="Create an account and receive a token bound to a new session.",
    operation_id="register",
    status_code=201,
    responses={
        201: {"description": "User registered and logged in"},
        400: {"model": ErrorResponse, "description": "Missing fields or user already exists"},
    },
)
async def register(request: RegisterRequest, app: AppDep, client: ClientInfoDep) -> SuccessResponse[IssuedSession]:
    issued = await app.register(request.name, request.email, request.password, client)
    return SuccessResponse(data=issued)


@router.post(
    "/login",
    summary="Authenticate user",
    description="Authenticate with email and password. Every login opens a separate session.",
    operation_id="login",
    responses={
        200: {"description": "Successfully authenticated"},
        400: {"model": ErrorResponse, "description": "Missing fields"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
    },
)
async def login(request: LoginRequest, app: AppDep, client: ClientInfoDep) -> SuccessResponse[IssuedSession]:
    issued = await app.login(request.email, request.password, client)
    return SuccessResponse(data=issued)


@router.post(
    "/logout",
    summary="End session",
    description="Invalidate the session of the presented token.",
    operation_id="logout",
    responses={
        200: {"description": "Successfully logged out"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def logout(app: AppDep, context: AuthContextDep) -> MessageResponse[LogoutData]:
    session = await app.logout(context)
    return MessageResponse(
        message="Logged out successfully",
        data=LogoutData(session=TerminatedSession(id=session.id, last_activity=session.last_activity)),
    )


@router.post(
    "/logout-all",
    summary="End all sessions",
    description="Invalidate every active session of the current user, including the current one.",
    operation_id="logoutAll",
    responses={
        200: {"description": "Sessions invalidated"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def logout_all(app: AppDep, context: AuthContextDep) -> MessageResponse[LogoutAllData]:
    count = await app.logout_all(context)
    return MessageResponse(
        message="Logged out from all devices successfully",
        data=LogoutAllData(sessions_terminated=count),
    )
