"""
Error taxonomy for the School Admin API.

Every error carries the HTTP status it maps to; the handlers in main.py turn
them into ``{"error": message}`` responses.
"""


class SchoolError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SchoolError):
    """Missing or invalid input."""
    status_code = 400


class NotFoundError(SchoolError):
    status_code = 404


class ConflictError(SchoolError):
    """A class already has a class teacher."""
    status_code = 400


class InternalError(SchoolError):
    status_code = 500

    def __init__(self, message: str = "Server error"):
        super().__init__(message)
