from fastapi import FastAPI, Request, status
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from pydantic import ValidationError
import traceback
from .logging import get_logger
from .responses import ResponseBuilder

logger = get_logger()


class AppError(Exception):
    """Base for every error carrying a message and a machine-readable code."""

    default_code = "APP_ERROR"

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code


class RosterValidationError(AppError):
    """Malformed input: student id, email, section or password format."""

    default_code = "VALIDATION_ERROR"

    def __init__(self, message: str, error_code: str | None = None, field: str | None = None):
        super().__init__(message, error_code)
        self.field = field


class ConflictError(AppError):
    """Duplicate identifier, within an import batch or against the live roster."""

    default_code = "CONFLICT"


class CollaboratorError(AppError):
    """External store or identity provider failure."""

    default_code = "COLLABORATOR_ERROR"
    transient = False


class EmailInUseError(CollaboratorError):
    default_code = "EMAIL_IN_USE"


class InvalidEmailError(CollaboratorError):
    default_code = "INVALID_EMAIL"


class WeakPasswordError(CollaboratorError):
    default_code = "WEAK_PASSWORD"


class NetworkError(CollaboratorError):
    default_code = "NETWORK_ERROR"
    transient = True


class ConsistencyGuardError(AppError):
    """Archive-before-delete ordering could not be honoured; the delete was not performed."""

    default_code = "ARCHIVE_REQUIRED"


class DatabaseError(AppError):
    default_code = "DB_ERROR"


class BusinessLogicError(AppError):
    default_code = "BLOC_ERROR"


class AuthorizationError(AppError):
    default_code = "AUTHZ_ERROR"

    def __init__(self, message: str = "Access denied", error_code: str | None = None):
        super().__init__(message, error_code)


class NotFoundError(AppError):
    default_code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found", error_code: str | None = None):
        super().__init__(message, error_code)


def _format_validation_errors(errors):
    formatted_errors = []
    for error in errors:
        field_path = " -> ".join(str(loc) for loc in error["loc"])
        formatted_errors.append(
            {
                "field": field_path,
                "message": error["msg"],
                "type": error["type"],
            }
        )
    return formatted_errors


# (exception type, HTTP status, meta error_type), most specific first
APP_ERROR_STATUS = (
    (RosterValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY, "VALIDATION_ERROR"),
    (ConflictError, status.HTTP_409_CONFLICT, "CONFLICT_ERROR"),
    (CollaboratorError, status.HTTP_502_BAD_GATEWAY, "COLLABORATOR_ERROR"),
    (ConsistencyGuardError, status.HTTP_409_CONFLICT, "CONSISTENCY_GUARD_ERROR"),
    (DatabaseError, status.HTTP_500_INTERNAL_SERVER_ERROR, "DATABASE_ERROR"),
    (BusinessLogicError, status.HTTP_400_BAD_REQUEST, "BUSINESS_ERROR"),
    (AuthorizationError, status.HTTP_403_FORBIDDEN, "AUTHORIZATION_ERROR"),
    (NotFoundError, status.HTTP_404_NOT_FOUND, "NOT_FOUND_ERROR"),
)


def setup_error_handlers(app: FastAPI):
    """Setup custom error handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.error(f"HTTP Exception: {exc.status_code} - {exc.detail}")
        return ResponseBuilder.error(
            request=request,
            message=str(exc.detail),
            error_code="HTTP_ERROR",
            status_code=exc.status_code,
            meta={"http_status": exc.status_code},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        logger.error(f"Request Validation Error: {exc.errors()}")
        return ResponseBuilder.error(
            request=request,
            message="Request validation failed",
            errors=_format_validation_errors(exc.errors()),
            error_code="VALIDATION_ERROR",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    @app.exception_handler(ValidationError)
    async def pydantic_validation_exception_handler(
        request: Request, exc: ValidationError
    ):
        logger.error(f"Pydantic Validation Error: {exc.errors()}")
        return ResponseBuilder.error(
            request=request,
            message="Data validation failed",
            error_code="INTERNAL_VALIDATION_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        status_code, error_type = status.HTTP_500_INTERNAL_SERVER_ERROR, "APP_ERROR"
        for error_cls, mapped_status, mapped_type in APP_ERROR_STATUS:
            if isinstance(exc, error_cls):
                status_code, error_type = mapped_status, mapped_type
                break

        logger.error(f"{error_type}: {exc.message}")

        meta = {"error_type": error_type}
        field = getattr(exc, "field", None)
        if field:
            meta["field"] = field

        return ResponseBuilder.error(
            request=request,
            message=exc.message,
            error_code=exc.error_code,
            status_code=status_code,
            meta=meta,
        )

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"SQLAlchemy Error: {str(exc)}")

        # Don't expose internal database errors to users
        return ResponseBuilder.error(
            request=request,
            message="A database error occurred",
            error_code="DATABASE_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            meta={"error_type": "SQLALCHEMY_ERROR"},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        logger.error(f"Value Error: {str(exc)}")
        return ResponseBuilder.error(
            request=request,
            message=str(exc),
            error_code="VALUE_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
            meta={"error_type": "VALUE_ERROR"},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle all other unhandled exceptions"""
        logger.error(f"Unhandled Exception: {str(exc)}")
        logger.error(f"Traceback: {traceback.format_exc()}")

        return ResponseBuilder.error(
            request=request,
            message="An internal server error occurred",
            error_code="INTERNAL_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            meta={"error_type": "INTERNAL_ERROR"},
        )
