"""
GameOn API Errors
Exception types raised by services and turned into JSON responses by the routes.
"""

from flask import jsonify


class Modules:
    """Numeric module identifiers used to build error codes"""
    EVENT = 1
    REGISTRATION = 2


class ErrorCodes:
    NOT_FOUND = 0
    BAD_PAYMENT_TYPE = 1
    EVENT_NOT_FOUND = 2
    REGISTRATION_ALREADY_EXISTS = 3
    DATABASE_ERROR = 4


def get_code(module: int, error: int) -> str:
    """Build an error code such as '2003' (registration module, duplicate registration)"""
    return f"{module}00{error}"


class ApiError(Exception):
    """Error with an HTTP status and an optional machine-readable code"""

    status = 500

    def __init__(self, message: str, status: int = None, code: str = None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        self.code = code

    def to_dict(self) -> dict:
        data = {'success': False, 'message': self.message}
        if self.code:
            data['code'] = self.code
        return data

    def to_response(self):
        return jsonify(self.to_dict()), self.status


class ValidationError(ApiError):
    status = 400


class Unauthorized(ApiError):
    status = 401

    def __init__(self, message: str = 'Authentication required', **kwargs):
        super().__init__(message, **kwargs)


class Forbidden(ApiError):
    status = 403

    def __init__(self, message: str = 'Insufficient permissions', **kwargs):
        super().__init__(message, **kwargs)


class NotFound(ApiError):
    status = 404


class Conflict(ApiError):
    status = 409


def event_not_found(event_id) -> NotFound:
    return NotFound(
        f"The event {event_id} was not found.",
        code=get_code(Modules.REGISTRATION, ErrorCodes.EVENT_NOT_FOUND)
    )
