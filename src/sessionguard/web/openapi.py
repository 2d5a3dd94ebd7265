from typing import Any, Literal

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from pydantic import BaseModel, Field

OPENAPI_TAGS = [
    {"name": "auth", "description": "Registration, login and logout. Every login opens its own session."},
    {"name": "sessions", "description": "Current user and the sessions it holds on other devices."},
]


def set_custom_openapi(app: FastAPI) -> None:
    def custom_openapi() -> dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title="SessionGuard API",
            version="0.1.0",
            summary="User authentication with server-side session tracking",
            routes=app.routes,
            tags=OPENAPI_TAGS,
        )

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi  # type: ignore[method-assign]


class SuccessResponse[T](BaseModel):
    """Standard success envelope."""

    status: Literal["success"] = "success"
    data: T


class MessageResponse[T](BaseModel):
    """Success envelope carrying a human-readable summary."""

    status: Literal["success"] = "success"
    message: str = Field(..., description="Human-readable summary")
    data: T


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    status: Literal["error"] = "error"
    message: str = Field(..., description="Human-readable error message")
    type: str | None = Field(None, description="Machine-readable error type")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"status": "error", "message": "Invalid email or password", "type": "authentication_error"},
                {"status": "error", "message": "Token expired", "type": "credential_expired"},
                {"status": "error", "message": "Invalid or expired session.", "type": "session_revoked_or_unknown"},
            ]
        }
    }
