from fastapi import APIRouter

from sessionguard.app import Dashboard, SessionList
from sessionguard.web.deps import AppDep, AuthContextDep
from sessionguard.web.openapi import ErrorResponse, SuccessResponse

router = APIRouter(tags=["sessions"])


@router.get(
    "/dashboard",
    summary="Get dashboard",
    description="Get the current user profile, the current session and all active sessions.",
    operation_id="getDashboard",
    responses={
        200: {"description": "Dashboard data"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        404: {"model": ErrorResponse, "description": "User not found"},
    },
)
async def get_dashboard(app: AppDep, context: AuthContextDep) -> SuccessResponse[Dashboard]:
    return SuccessResponse(data=await app.get_dashboard(context))


@router.get(
    "/sessions",
    summary="List active sessions",
    description="List active sessions of the current user, most recently active first.",
    operation_id="listSessions",
    responses={
        200: {"description": "Active sessions"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def list_sessions(app: AppDep, context: AuthContextDep) -> SuccessResponse[SessionList]:
    return SuccessResponse(data=await app.list_sessions(context))
