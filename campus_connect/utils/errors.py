from fastapi import FastAPI, Request, status
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from pydantic import ValidationError
from .logging import get_logger
from .responses import ResponseBuilder

logger = get_logger()


class CampusConnectError(Exception):
    """
    Base class for errors that map straight onto an HTTP answer.

    Subclasses pick the status code and the `errorType` reported in `meta`;
    callers pick the message and a machine-readable error code.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type: str = "INTERNAL_ERROR"
    default_message: str = "An internal server error occurred"
    default_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str = None, error_code: str = None):
        self.message = message or self.default_message
        self.error_code = error_code or self.default_code
        super().__init__(self.message)


class DatabaseError(CampusConnectError):
    error_type = "DATABASE_ERROR"
    default_message = "A database error occurred"
    default_code = "DB_ERROR"


class BusinessLogicError(CampusConnectError):
    """Unexpected failure inside an operation; routers wrap it with `<OPERATION>_FAILED`."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "BUSINESS_ERROR"
    default_message = "The operation could not be completed"
    default_code = "BLOC_ERROR"


class AuthenticationError(CampusConnectError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "AUTHENTICATION_ERROR"
    default_message = "Authentication failed"
    default_code = "UNAUTHORIZED"


class AuthorizationError(CampusConnectError):
    status_code = status.HTTP_403_FORBIDDEN
    error_type = "AUTHORIZATION_ERROR"
    default_message = "Access denied"
    default_code = "FORBIDDEN"


class NotFoundError(CampusConnectError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "NOT_FOUND_ERROR"
    default_message = "Resource not found"
    default_code = "NOT_FOUND"


class ConflictError(CampusConnectError):
    status_code = status.HTTP_409_CONFLICT
    error_type = "CONFLICT_ERROR"
    default_message = "Conflict"
    default_code = "CONFLICT"


def _format_validation_errors(errors) -> list:
    return [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in errors
    ]


def setup_error_handlers(app: FastAPI):
    """Register envelope-producing handlers, most specific first."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(f"HTTP {exc.status_code} on {request.url.path}: {exc.detail}")
        return ResponseBuilder.error(
            request=request,
            message=str(exc.detail),
            error_code="HTTP_ERROR",
            status_code=exc.status_code,
            meta={"httpStatus": exc.status_code},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        logger.warning(f"Request validation failed on {request.url.path}: {exc.errors()}")
        return ResponseBuilder.error(
            request=request,
            message="Request validation failed",
            errors=_format_validation_errors(exc.errors()),
            error_code="VALIDATION_ERROR",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    # A response we built does not fit its own schema
    @app.exception_handler(ValidationError)
    async def pydantic_validation_exception_handler(
        request: Request, exc: ValidationError
    ):
        logger.error(f"Response model validation failed: {exc.errors()}")
        return ResponseBuilder.error(
            request=request,
            message="Data validation failed",
            error_code="INTERNAL_VALIDATION_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    @app.exception_handler(CampusConnectError)
    async def campus_connect_exception_handler(request: Request, exc: CampusConnectError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(f"{exc.error_type} [{exc.error_code}] on {request.url.path}: {exc.message}")
        return ResponseBuilder.error(
            request=request,
            message=exc.message,
            error_code=exc.error_code,
            status_code=exc.status_code,
            meta={"errorType": exc.error_type},
        )

    @app.exception_handler(StaleDataError)
    async def stale_data_exception_handler(request: Request, exc: StaleDataError):
        logger.warning(f"Stale write rejected on {request.url.path}: {str(exc)}")
        return ResponseBuilder.error(
            request=request,
            message="The resource was modified concurrently, please retry",
            error_code="CONCURRENT_MODIFICATION",
            status_code=status.HTTP_409_CONFLICT,
        )

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.opt(exception=exc).error(f"Database failure on {request.url.path}")
        # Internal database detail never reaches the client
        return ResponseBuilder.error(
            request=request,
            message="A database error occurred",
            error_code="DATABASE_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            meta={"errorType": "SQLALCHEMY_ERROR"},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        logger.warning(f"Unhandled ValueError on {request.url.path}: {str(exc)}")
        return ResponseBuilder.error(
            request=request,
            message=str(exc),
            error_code="VALUE_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
            meta={"errorType": "VALUE_ERROR"},
        )

    @app.exception_handler(KeyError)
    async def key_error_handler(request: Request, exc: KeyError):
        logger.warning(f"Missing key on {request.url.path}: {str(exc)}")
        return ResponseBuilder.error(
            request=request,
            message=f"Required key not found: {str(exc)}",
            error_code="KEY_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
            meta={"errorType": "KEY_ERROR", "missingKey": str(exc)},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.opt(exception=exc).error(f"Unhandled exception on {request.url.path}: {str(exc)}")
        return ResponseBuilder.error(
            request=request,
            message="An internal server error occurred",
            error_code="INTERNAL_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            meta={"errorType": "INTERNAL_ERROR"},
        )
