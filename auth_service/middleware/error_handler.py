import traceback
from typing import Any, Dict, List

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from jose import JWTError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth_service.config import settings
from auth_service.exceptions import BaseCustomException, ValidationError, unique_constraint_message
from auth_service.utils.logger import get_logger

logger = get_logger("error_handler")


def error_response(status_code: int, message: str, error_type: str, details: Any = None) -> JSONResponse:
    """Build the failure envelope shared by every handler"""
    content = {
        "success": False,
        "error": message,
        "error_type": error_type,
    }
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def validation_details(exc: RequestValidationError) -> List[Dict[str, str]]:
    """
    Flatten pydantic errors into one {field, message} entry per problem

    Args:
        exc: FastAPI request validation error

    Returns:
        List of field-level messages
    """
    details = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ())]
        field = ".".join(location[1:]) if len(location) > 1 else ".".join(location)
        cause = (error.get("ctx") or {}).get("error")
        message = str(cause) if cause is not None else error.get("msg", "Invalid value")
        details.append({"field": field, "message": message})
    return details


def setup_error_handlers(app):
    """
    Set up error handlers for the FastAPI app

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(BaseCustomException)
    async def custom_exception_handler(request: Request, exc: BaseCustomException):
        """Handle custom exceptions"""
        log = logger.error if exc.status_code >= 500 else logger.info
        log(f"{exc.__class__.__name__} {exc.status_code} {request.method} {request.url.path}: {exc.message}")
        details = exc.details if (settings.DEBUG or isinstance(exc, ValidationError)) else None
        return error_response(exc.status_code, exc.message, exc.__class__.__name__, details)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors"""
        details = validation_details(exc)
        logger.info(f"Validation failed {request.method} {request.url.path}: {details}")
        return error_response(status.HTTP_400_BAD_REQUEST, "Validation failed", "ValidationError", details)

    @app.exception_handler(IntegrityError)
    async def integrity_exception_handler(request: Request, exc: IntegrityError):
        """Handle unique constraint races that escaped a transaction block"""
        logger.warning(f"Integrity error {request.method} {request.url.path}: {str(exc.orig)}")
        return error_response(status.HTTP_409_CONFLICT, unique_constraint_message(exc), "ConflictError")

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        """Handle database errors"""
        logger.error(f"Database error: {str(exc)}", exc_info=True)
        details = {"original_error": str(exc)} if settings.DEBUG else None
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Database error occurred", "DatabaseError", details
        )

    @app.exception_handler(JWTError)
    async def jwt_exception_handler(request: Request, exc: JWTError):
        """Handle JWT errors"""
        logger.warning(f"JWT error: {str(exc)}")
        return error_response(status.HTTP_401_UNAUTHORIZED, "Invalid token", "TokenError")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle framework HTTP errors such as unknown routes"""
        if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
            message = f"Route {request.url.path} not found"
        else:
            message = str(exc.detail)
        return error_response(exc.status_code, message, "HTTPException")

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle any other unexpected errors"""
        logger.error(f"Unexpected error {request.method} {request.url.path}: {str(exc)}", exc_info=True)
        details = {"original_error": str(exc), "traceback": traceback.format_exc()} if settings.DEBUG else None
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", "InternalServerError", details
        )
