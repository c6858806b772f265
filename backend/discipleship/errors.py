"""Domain error taxonomy.

Services and repositories raise these; `main.py` maps each class to an
HTTP status through its `status_code` attribute.
"""


class DiscipleshipError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class NotFoundError(DiscipleshipError):
    """Entity is absent or belongs to another church."""
    status_code = 404
    code = "NOT_FOUND"


class ValidationError(DiscipleshipError):
    status_code = 400
    code = "VALIDATION_ERROR"


class InvalidTransitionError(DiscipleshipError):
    status_code = 409
    code = "INVALID_TRANSITION"


class ConflictError(DiscipleshipError):
    status_code = 409
    code = "CONFLICT"


class AuthenticationError(DiscipleshipError):
    status_code = 401
    code = "INVALID_CREDENTIALS"


class PermissionDeniedError(DiscipleshipError):
    status_code = 403
    code = "ACCESS_DENIED"


class StoreError(DiscipleshipError):
    """Underlying database failure; never retried."""
    status_code = 500
    code = "STORE_ERROR"
