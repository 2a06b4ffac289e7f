"""
Errors raised by the link and version services.

The API layer maps them to HTTP responses (see `main.py`); services never
retry on them.
"""


class LinkVersionError(Exception):
    """Base class for link/version service errors"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(LinkVersionError):
    """Link or version record does not exist"""

    status_code = 404


class ConflictError(LinkVersionError):
    """Concurrent modification detected (version number race, busy lock)"""

    status_code = 409


class ValidationError(LinkVersionError):
    """Malformed reason tag, detail payload or target version"""

    status_code = 422
