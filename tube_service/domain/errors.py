"""
Domain errors - every failure the core can report to the boundary
"""
from typing import List, Optional


class TubeServiceError(Exception):
    """Base error carrying the status the boundary should render"""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[str]] = None):
        self.message = message or self.default_message
        self.errors = errors or []
        super().__init__(self.message)


class ValidationError(TubeServiceError):
    """Malformed or missing input"""
    status_code = 400
    default_message = "Invalid request"


class InvalidReference(ValidationError):
    """An entity id that is not a well-formed ObjectId"""
    default_message = "Invalid reference"


class AuthError(TubeServiceError):
    status_code = 401
    default_message = "Unauthorized request"


class InvalidToken(AuthError):
    default_message = "Invalid token"


class SignatureInvalid(InvalidToken):
    default_message = "Invalid refresh token"


class Expired(AuthError):
    default_message = "Token has expired"


class FingerprintMismatch(AuthError):
    default_message = "Refresh token is expired or already used"


class InvalidPassword(AuthError):
    default_message = "Invalid password"


class ForbiddenError(TubeServiceError):
    """Caller is authenticated but does not own the entity"""
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(TubeServiceError):
    status_code = 404
    default_message = "Not found"


class UserNotFound(NotFoundError):
    default_message = "User not found"


class ConflictError(TubeServiceError):
    """Duplicate value for a unique field"""
    status_code = 409
    default_message = "Conflict"


class PersistenceError(TubeServiceError):
    default_message = "Storage operation failed"


class DependencyError(TubeServiceError):
    """Remote object store failure"""
    default_message = "Remote storage operation failed"
