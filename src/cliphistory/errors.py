"""Exception types raised by the ClipHistory core."""

from typing import Optional


class ClipHistoryError(Exception):
    """Base class for all ClipHistory errors."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.original_error:
            return f"{base_msg} (caused by {type(self.original_error).__name__}: {self.original_error})"
        return base_msg


class DecodeError(ClipHistoryError):
    """Clipboard image bytes could not be decoded."""


class UnsupportedFormatError(ClipHistoryError):
    """Image format outside png/jpeg/gif."""


class EmptyFileError(ClipHistoryError):
    """An image file exists but has no content."""


class IntegrityError(ClipHistoryError):
    """The clipboard did not hold the payload we just wrote to it."""


class NotFoundError(ClipHistoryError):
    """No history item matches the requested id."""


class InvalidItemError(ClipHistoryError):
    pass


class EmptyPathError(ClipHistoryError):
    pass


class UnsupportedTypeError(ClipHistoryError):
    pass


class AlreadyRunningError(ClipHistoryError):
    pass


class StorageError(ClipHistoryError):
    """The backing medium could not be read or written."""


class ConfigurationError(ClipHistoryError):
    pass
