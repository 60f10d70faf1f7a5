"""
sciencefair/exceptions.py
Typed exceptions for the scoring and promotion engine.

These are raised inside the storage layer and caught by the level
publisher, which reports them to callers as OperationResult values.
"""


class EngineException(Exception):
    """Base exception for the science fair engine"""
    status_code: int = 500

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        if status_code:
            self.status_code = status_code
        super().__init__(self.message)


class InvalidRequestError(EngineException):
    """
    Raised when an operation is requested with invalid input.

    Examples:
    - Publishing with no active edition
    - Unknown competition level
    """
    status_code = 400

    def __init__(self, message: str = "Invalid request"):
        super().__init__(message, self.status_code)


class PermissionDeniedError(EngineException):
    """
    Raised when the acting user lacks an administrative role.
    """
    status_code = 403

    def __init__(self, message: str = "Administrator role required"):
        super().__init__(message, self.status_code)


class NotFoundError(EngineException):
    """
    Raised when requested resource doesn't exist.
    """
    status_code = 404

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, self.status_code)


class StorageError(EngineException):
    """
    Raised when a persistence call fails.
    """
    status_code = 500

    def __init__(self, message: str = "Storage operation failed"):
        super().__init__(message, self.status_code)


class SnapshotCorruptError(EngineException):
    """
    Raised when a stored role snapshot cannot be parsed.
    """
    status_code = 500

    def __init__(self, message: str = "Role snapshot could not be parsed"):
        super().__init__(message, self.status_code)
