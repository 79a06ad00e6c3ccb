"""Error taxonomy shared by services and the HTTP layer.

Services raise these before touching the database; `main` maps each
class to its HTTP status code and renders the message as `detail`.
"""


class ServiceError(Exception):
    """Base class for request-local, non-fatal failures."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(ServiceError):
    """An assignment, submission, course, lecture or user id does not resolve."""
    status_code = 404


class Forbidden(ServiceError):
    """The caller's role or ownership does not permit the operation."""
    status_code = 403


class ValidationError(ServiceError, ValueError):
    """Malformed questions, answers or request fields."""
    status_code = 400


class Conflict(ServiceError):
    """Duplicate submission or a deadline that has already passed."""
    status_code = 409
