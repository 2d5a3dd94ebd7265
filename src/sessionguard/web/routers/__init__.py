from sessionguard.web.routers.auth import router as auth_router
from sessionguard.web.routers.sessions import router as sessions_router

__all__ = [
    "auth_router",
    "sessions_router",
]
