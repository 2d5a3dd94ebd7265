from typing import Annotated, cast

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from sessionguard.app import App
from sessionguard.core.modules.access.models import Admitted, AuthContext, Rejected
from sessionguard.core.modules.session.models import UNKNOWN_CLIENT, ClientInfo
from sessionguard.errors import AuthenticationError

# Security schemes
bearer_scheme = HTTPBearer(
    auto_error=False,
    scheme_name="BearerAuth",
    bearerFormat="JWT",
    description="Token returned by register or login",
)


async def get_app(request: Request) -> App:
    return cast(App, request.app.state.app)


async def get_auth_context(
    app: Annotated[App, Depends(get_app)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)] = None,
) -> AuthContext:
    """Authenticate the Authorization Bearer token and return the admitted context."""
    token = credentials.credentials if credentials else None
    match await app.authenticate(token):
        case Admitted(context=context):
            return context
        case Rejected(failure=failure):
            raise AuthenticationError.from_failure(failure)


async def get_client_info(request: Request) -> ClientInfo:
    """Client metadata recorded on new sessions."""
    return ClientInfo(
        user_agent=request.headers.get("user-agent") or UNKNOWN_CLIENT,
        ip_address=request.client.host if request.client else UNKNOWN_CLIENT,
    )


# Type aliases for dependencies
AppDep = Annotated[App, Depends(get_app)]
AuthContextDep = Annotated[AuthContext, Depends(get_auth_context)]
ClientInfoDep = Annotated[ClientInfo, Depends(get_client_info)]
