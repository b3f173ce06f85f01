"""
Error taxonomy shared by the services and the HTTP / real-time surfaces.
Each error carries the HTTP status it maps to.
"""


class ClinicError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ClinicError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(ClinicError):
    status_code = 401
    default_message = "Authentication error"


class AuthorizationError(ClinicError):
    status_code = 403
    default_message = "Access denied"


class NotFoundError(ClinicError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(ClinicError):
    # Reported as 400 like the rest of the booking errors
    status_code = 400
    default_message = "Resource already exists"


class InternalError(ClinicError):
    status_code = 500
