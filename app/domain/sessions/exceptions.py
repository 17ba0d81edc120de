"""Session domain exceptions

Raised by the lifecycle service before any mutation happens. Routers translate
them to HTTP responses through the exception handler registered in main.py.
"""

from typing import Optional


class SessionDomainError(Exception):
    """Base class for session lifecycle errors"""

    status_code = 400
    error_code = "SESSION_ERROR"

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code


class ValidationError(SessionDomainError):
    """Malformed input: empty title, out-of-range duration, unparseable date"""

    error_code = "VALIDATION_ERROR"


class NotFound(SessionDomainError):
    status_code = 404
    error_code = "NOT_FOUND"


class Forbidden(SessionDomainError):
    """Caller is not a party to the session"""

    status_code = 403
    error_code = "FORBIDDEN"


class InvalidTransition(SessionDomainError):
    """Status precondition not met; the session is left unchanged"""

    error_code = "INVALID_TRANSITION"

    def __init__(self, message: str, current_status: Optional[str] = None, target_status: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status
        self.target_status = target_status


class WrongParty(InvalidTransition):
    """A party tried to confirm a session they requested themselves"""

    error_code = "WRONG_PARTY"
