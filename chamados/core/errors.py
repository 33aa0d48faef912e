"""Domain errors shared by the services.

Each error carries a machine-readable ``code`` and the HTTP status the API
layer answers with.
"""


class ChamadosError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(ChamadosError):
    code = "NOT_FOUND"
    status_code = 404


class AlreadyExists(ChamadosError):
    code = "ALREADY_EXISTS"
    status_code = 409


class InvalidReference(ChamadosError):
    code = "INVALID_REFERENCE"
    status_code = 400


class InvalidState(ChamadosError):
    code = "INVALID_STATE"
    status_code = 409


class AuthError(ChamadosError):
    code = "UNAUTHORIZED"
    status_code = 401


class AccessDenied(ChamadosError):
    code = "FORBIDDEN"
    status_code = 403
