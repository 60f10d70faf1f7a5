"""
sciencefair/errors.py
Centralized API error handling

ERROR RESPONSE STRUCTURE:
{
    "success": false,
    "error": "ErrorType",
    "message": "Human-readable description",
    "code": "UNIQUE_ERROR_CODE",
    "details": {} (optional, for validation errors)
}

HTTP STATUS CODE DISCIPLINE:
- 200: Successful request (publish/rollback failures are reported in the body)
- 400: Invalid input / malformed request
- 401: Authentication missing or expired
- 403: Access forbidden (role / jurisdiction)
- 404: Resource does not exist
- 422: Validation error (Pydantic)
- 500: NEVER caused by user input (internal only)
"""

from typing import Optional, Dict, Any
from fastapi import status
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorCode:
    """Unique error codes for machine-readable error handling"""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"

    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_INVALID = "AUTH_INVALID"

    FORBIDDEN = "FORBIDDEN"

    NOT_FOUND = "NOT_FOUND"
    EDITION_NOT_FOUND = "EDITION_NOT_FOUND"
    PROJECT_NOT_FOUND = "PROJECT_NOT_FOUND"

    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse(BaseModel):
    """Standard error response model"""
    success: bool = False
    error: str
    message: str
    code: str
    details: Optional[Dict[str, Any]] = None


class APIError(Exception):
    """Base API exception with consistent structure"""

    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        code: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.status_code = status_code
        self.error = error
        self.message = message
        self.code = code
        self.details = details
        super().__init__(message)

    def to_response(self) -> JSONResponse:
        """Convert to FastAPI JSONResponse"""
        return JSONResponse(status_code=self.status_code, content=self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        result = {
            "success": False,
            "error": self.error,
            "message": self.message,
            "code": self.code
        }
        if self.details:
            result["details"] = self.details
        return result


class BadRequestError(APIError):
    """400 Bad Request - Invalid input"""
    def __init__(self, message: str, code: str = ErrorCode.INVALID_INPUT, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="Bad Request",
            message=message,
            code=code,
            details=details
        )


class ForbiddenError(APIError):
    """403 Forbidden - Access denied"""
    def __init__(self, message: str, code: str = ErrorCode.FORBIDDEN, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error="Forbidden",
            message=message,
            code=code,
            details=details
        )


class NotFoundError(APIError):
    """404 Not Found - Resource does not exist"""
    def __init__(self, resource: str, identifier: Any = None, code: str = ErrorCode.NOT_FOUND):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} with id '{identifier}' not found"
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error="Not Found",
            message=message,
            code=code
        )


ERROR_MAPPING = {
    400: ("Bad Request", ErrorCode.INVALID_INPUT),
    401: ("Unauthorized", ErrorCode.AUTH_REQUIRED),
    403: ("Forbidden", ErrorCode.FORBIDDEN),
    404: ("Not Found", ErrorCode.NOT_FOUND),
    422: ("Validation Error", ErrorCode.VALIDATION_ERROR),
    500: ("Internal Error", ErrorCode.INTERNAL_ERROR),
}
