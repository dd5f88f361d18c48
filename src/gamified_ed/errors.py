"""Application error taxonomy and their HTTP renderings."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger()


class AppError(Exception):
    """Base error carrying an HTTP status and a client-safe message."""

    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class AuthError(AppError):
    status_code = 401
    default_message = "Invalid credentials"


class NotFoundError(AppError):
    status_code = 404
    default_message = "User not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "User already exists"


class InternalError(AppError):
    status_code = 500
    default_message = "Internal error"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse({"message": exc.message}, status_code=exc.status_code)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render body schema failures as 400 instead of FastAPI's default 422."""
    errors = [
        {"field": ".".join(str(p) for p in err["loc"][1:]), "error": err["msg"]}
        for err in exc.errors()
    ]
    logger.info("request_validation_failed", path=request.url.path, errors=errors)
    return JSONResponse(
        {"message": "Invalid request body", "errors": errors}, status_code=400
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
