class ConsoleError(Exception):
    """Base error for console operations; carries the HTTP status it maps to."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ConsoleError):
    status_code = 400


class NotFoundError(ConsoleError):
    status_code = 404


class NotConnectedError(ConsoleError):
    status_code = 503

    def __init__(self, message: str = "Not connected"):
        super().__init__(message)


class ConnectionFailedError(ConsoleError):
    """Raised when the remote is unreachable, rejects auth, or the URI is malformed."""

    status_code = 500
