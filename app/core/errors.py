from enum import Enum
from typing import Any, Dict, List, Optional

import httpx
from fastapi.exceptions import RequestValidationError
from postgrest.exceptions import APIError
from pydantic import ValidationError

from app.core.logger import logger


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"


# Location prefixes FastAPI adds in front of the field path
_REQUEST_LOCATIONS = {"body", "query", "path", "header", "cookie"}

# Failures raised by the store driver rather than by our own code
DRIVER_ERRORS = (APIError, httpx.HTTPError, ConnectionError, TimeoutError)


def violations(exc: Any) -> List[Dict[str, str]]:
    """
    Flattens pydantic/FastAPI validation errors into (field-path, message) pairs.
    """
    result = []
    for error in exc.errors():
        loc = list(error.get("loc", ()))
        if loc and loc[0] in _REQUEST_LOCATIONS:
            loc = loc[1:]
        result.append({
            "path": ".".join(str(part) for part in loc),
            "message": error.get("msg", "Invalid value"),
        })
    return result


class AppError(Exception):
    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = ErrorCode(code)
        self.status_code = status_code
        self.metadata = metadata or {}
        self.context: Optional[str] = None

    def __repr__(self) -> str:
        return f"AppError({self.code.value}, {self.status_code}, {self.message!r})"

    @classmethod
    def from_validation_error(cls, exc: Any) -> "AppError":
        return cls("Validation failed", ErrorCode.VALIDATION_ERROR, 400, {"errors": violations(exc)})

    @classmethod
    def from_unknown(cls, exc: BaseException) -> "AppError":
        if isinstance(exc, AppError):
            return exc
        if isinstance(exc, (ValidationError, RequestValidationError)):
            return cls.from_validation_error(exc)
        message = str(exc) or "An unknown error occurred"
        return cls(message, ErrorCode.INTERNAL_ERROR, 500)

    @classmethod
    def from_database_error(cls, exc: BaseException) -> "AppError":
        """Store-driver failures become DATABASE_ERROR, the rest goes through from_unknown."""
        if isinstance(exc, DRIVER_ERRORS):
            message = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
            metadata = {}
            if isinstance(exc, APIError) and exc.code:
                metadata["sqlstate"] = exc.code
            return cls(message, ErrorCode.DATABASE_ERROR, 500, metadata)
        return cls.from_unknown(exc)

    def tag(self, context: Optional[str]) -> "AppError":
        if context and not self.context:
            self.context = context
        return self

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message, "code": self.code.value}
        if "errors" in self.metadata:
            body["errors"] = self.metadata["errors"]
        return body


def log_error(error: AppError) -> None:
    """Single log line for every error that crosses a response boundary."""
    line = (
        f"Error in {error.context or 'unknown context'}: {error.message} "
        f"(code={error.code.value}, status={error.status_code}, metadata={error.metadata})"
    )
    if error.status_code >= 500:
        logger.error(f"❌ {line}")
    else:
        logger.warning(f"⚠️ {line}")
