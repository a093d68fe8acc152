from enum import Enum

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.platform.logger import get_logger
from app.platform.response import api_response

logger = get_logger(__name__)


class ErrorCode(str, Enum):
    VALIDATION = "VALIDATION"
    CONFLICT = "CONFLICT"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    INVALID_OR_EXPIRED_TOKEN = "INVALID_OR_EXPIRED_TOKEN"
    INVALID_OR_EXPIRED_CODE = "INVALID_OR_EXPIRED_CODE"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    NOT_FOUND = "NOT_FOUND"
    SERVER_ERROR = "SERVER_ERROR"


STATUS_BY_CODE = {
    ErrorCode.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.INVALID_OR_EXPIRED_TOKEN: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_OR_EXPIRED_CODE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.SERVER_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def check_status_mapping(mapping: dict) -> None:
    """Fail loudly at import if an ErrorCode has no HTTP status."""
    unmapped = set(ErrorCode) - set(mapping)
    if unmapped:
        raise RuntimeError(f"STATUS_BY_CODE is missing: {sorted(code.value for code in unmapped)}")


check_status_mapping(STATUS_BY_CODE)


class AccountError(Exception):
    """Failure raised by the account core; the code decides the HTTP status."""

    def __init__(self, code: ErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def status_code(self) -> int:
        return STATUS_BY_CODE[self.code]

    def __repr__(self):
        return f"<AccountError(code={self.code.value}, message={self.message!r})>"


def _auth_headers(status_code: int):
    if status_code == status.HTTP_401_UNAUTHORIZED:
        return {"WWW-Authenticate": "Bearer"}
    return None


def add_exception_handlers(app: FastAPI):
    @app.exception_handler(AccountError)
    async def account_error_handler(request: Request, exc: AccountError):
        if exc.code is ErrorCode.SERVER_ERROR:
            logger.error(f"Server error on {request.url.path}: {exc.message}")
        return api_response(
            message=exc.message,
            status_code=exc.status_code,
            headers=_auth_headers(exc.status_code),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return api_response(
            message=str(exc.detail) or "Error",
            status_code=exc.status_code,
            headers=exc.headers or _auth_headers(exc.status_code),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        missing = [
            str(err["loc"][-1]) for err in exc.errors() if err.get("type") == "missing"
        ]
        message = f"Missing required fields: {', '.join(missing)}" if missing else "Validation failed"
        return api_response(message=message, status_code=status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception on {request.url.path}: {exc}")
        return api_response(
            message="Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
