import structlog

from sessionguard.core.core import Service
from sessionguard.core.modules.access.models import Admitted, AuthContext, AuthResult, Rejected
from sessionguard.core.modules.token.codec import InvalidTokenSignatureError, TokenExpiredError
from sessionguard.errors import AuthFailure, NotFoundError

logger = structlog.get_logger(__name__)


class AccessService(Service):
    """Admits or rejects requests carrying a bearer token.

    A request is admitted only when the token verifies and a valid session
    for that token and its embedded user exists. Auth failures come back as
    ``Rejected`` values; store or codec faults propagate as exceptions.
    """

    async def authenticate(self, token: str | None) -> AuthResult:
        if not token:
            return Rejected(AuthFailure.NO_CREDENTIAL)

        try:
            claims = self.core.token_codec.verify(token)
        except InvalidTokenSignatureError:
            return Rejected(AuthFailure.BAD_CREDENTIAL)
        except TokenExpiredError:
            return Rejected(AuthFailure.CREDENTIAL_EXPIRED)

        sessions = self.core.services.session
        try:
            session = await sessions.find_active_by_token(token, claims.user_id)
            # The session may be invalidated right after the lookup; this request still goes through
            session = await sessions.touch(session)
        except NotFoundError:
            logger.debug("session_rejected", user_id=claims.user_id)
            return Rejected(AuthFailure.SESSION_REVOKED_OR_UNKNOWN)

        return Admitted(AuthContext(user_id=claims.user_id, token=token, session=session))
