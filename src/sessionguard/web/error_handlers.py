import logging
import traceback

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from sessionguard.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def create_json_error_response(
    status_code: int, message: str, error_type: str | None = None, stack: str | None = None
) -> JSONResponse:
    """Create JSON error envelope with optional type for machine parsing."""
    content = {"status": "error", "message": message}
    if error_type:
        content["type"] = error_type
    if stack:
        content["stack"] = stack
    return JSONResponse(status_code=status_code, content=content)


async def user_error_handler(_: Request, exc: Exception) -> Response:
    """Handle all UserError subclasses with appropriate status codes."""
    if isinstance(exc, AuthenticationError):
        status_code = 401
        error_type = exc.failure.value if exc.failure else "authentication_error"
    elif isinstance(exc, NotFoundError):
        status_code = 404
        error_type = "not_found"
    elif isinstance(exc, ConflictError):
        status_code = 400
        error_type = "conflict"
    elif isinstance(exc, ValidationError):
        status_code = 400
        error_type = "validation_error"
    else:
        # Default for any other UserError subclass
        status_code = 400
        error_type = "bad_request"

    return create_json_error_response(status_code=status_code, message=str(exc), error_type=error_type)


async def http_exception_handler(_: Request, exc: StarletteHTTPException) -> Response:
    """Render framework HTTP errors (unknown routes, wrong methods) in the error envelope."""
    message = "Route not found" if exc.status_code == 404 else str(exc.detail)
    response = create_json_error_response(status_code=exc.status_code, message=message)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def request_validation_error_handler(_: Request, exc: RequestValidationError) -> Response:
    """Handle malformed request bodies."""
    logger.debug("Request validation failed: %s", exc.errors())
    return create_json_error_response(status_code=400, message="Invalid request body", error_type="validation_error")


async def general_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle unexpected errors (500); the traceback is only exposed in development mode."""
    logger.exception("Unexpected error: %s", exc)
    stack = None
    if request.app.state.config.debug:
        stack = "".join(traceback.format_exception(exc))
    return create_json_error_response(
        status_code=500, message="Internal server error", error_type="internal_server_error", stack=stack
    )
