"""Exception types raised by the store and its import/export layers."""


class SpeedlesenError(Exception):
    """Base error carrying an HTTP-ish status code for the API layer."""

    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ValidationError(SpeedlesenError):
    """Raised when a write is missing an identifying field."""

    def __init__(self, message="Validation failed."):
        super().__init__(message, 422)


class FormatError(SpeedlesenError):
    """Raised for unrecognized import payloads or malformed backups."""

    def __init__(self, message="Unrecognized data format."):
        super().__init__(message, 400)


class IntegrityError(SpeedlesenError):
    """Raised when a backup's checksum does not match its data."""

    def __init__(self, message="Backup integrity check failed."):
        super().__init__(message, 409)


class StorageError(SpeedlesenError):
    """Raised when the underlying backend fails or aborts a write."""

    def __init__(self, message="Storage backend failure."):
        super().__init__(message, 503)
