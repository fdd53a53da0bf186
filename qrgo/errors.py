"""
Error taxonomy shared by the services and the HTTP layer.
Every error is scoped to the operation that raised it.
"""


class QrgoError(Exception):
    status_code = 400
    error_code = "BAD_REQUEST"

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        body = {
            "success": False,
            "error_code": self.error_code,
            "message": self.message,
        }
        body.update(self.details)
        return body


class ValidationError(QrgoError):
    status_code = 400
    error_code = "VALIDATION_ERROR"

    def __init__(self, message, field=None):
        if field:
            super().__init__(message, field=field)
        else:
            super().__init__(message)
        self.field = field


class BookingNotOpen(QrgoError):
    status_code = 409
    error_code = "BOOKING_NOT_OPEN"


class DuplicateBooking(QrgoError):
    status_code = 409
    error_code = "DUPLICATE_BOOKING"

    def __init__(self, message, rule):
        super().__init__(message, rule=rule)
        self.rule = rule


class InvalidTransition(QrgoError):
    status_code = 409
    error_code = "INVALID_TRANSITION"


class AlreadyCheckedIn(InvalidTransition):
    error_code = "ALREADY_CHECKED_IN"


class Forbidden(QrgoError):
    status_code = 403
    error_code = "FORBIDDEN"


class NotFound(QrgoError):
    status_code = 404
    error_code = "NOT_FOUND"


class StorageFailure(QrgoError):
    status_code = 503
    error_code = "STORAGE_FAILURE"

    def __init__(self, message="Something went wrong while saving. Please try again."):
        super().__init__(message)


class ScanDecodeError(QrgoError):
    error_code = "SCAN_DECODE_ERROR"
