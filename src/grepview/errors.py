"""Error taxonomy shared by the search and reader pipelines."""

from __future__ import annotations


class GrepviewError(Exception):
    """Base for every recoverable error surfaced to a caller."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(GrepviewError):
    """Raised when a request field is empty or malformed."""

    code = "INVALID_INPUT"


class NotFoundError(GrepviewError):
    """Raised when a requested path does not exist."""

    code = "NOT_FOUND"


class FileReadError(GrepviewError):
    """Raised when a file cannot be opened, mapped or read."""

    code = "IO_ERROR"


class ProcessError(GrepviewError):
    """Raised when the external search tool cannot be started or finish."""

    code = "PROCESS_ERROR"


class DecodeError(GrepviewError):
    """Raised when file content cannot be interpreted as text."""

    code = "DECODE_ERROR"
