"""Exception classes for the OneNote migrator.

All pipeline exceptions inherit from OneNoteMigratorError. Faults raised
while reading OneNote files carry a code and a recoverable flag so the
error classifier can decide between a fallback value and a failed result.
"""


class OneNoteMigratorError(Exception):
    """Base exception for all migrator errors."""


class ConfigurationError(OneNoteMigratorError):
    """Raised for missing or invalid configuration values."""


class OneNoteError(OneNoteMigratorError):
    """A fault raised while extracting or parsing a OneNote file.

    Args:
        message: Human-readable description of the fault.
        code: Machine-readable fault code.
        file_path: The file being processed, if any.
        operation: The operation that raised the fault.
        recoverable: Whether a degraded fallback value may replace the result.
    """

    default_code = "UNKNOWN_ERROR"
    default_recoverable = False

    def __init__(
        self,
        message: str,
        code: str | None = None,
        *,
        file_path: str | None = None,
        operation: str | None = None,
        recoverable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.file_path = file_path
        self.operation = operation
        self.recoverable = (
            self.default_recoverable if recoverable is None else recoverable
        )


class SourceNotFoundError(OneNoteError):
    """Raised when an input file does not exist."""

    default_code = "FILE_NOT_FOUND"


class InvalidFormatError(OneNoteError):
    """Raised when a file is not a usable OneNote section or package."""

    default_code = "INVALID_FORMAT"
    default_recoverable = True


class ParsingError(OneNoteError):
    """Raised when readable content cannot be recovered from a section."""

    default_code = "PARSING_FAILED"
    default_recoverable = True


class RemoteStoreError(OneNoteMigratorError):
    """Raised when the Notion API rejects a request.

    Args:
        message: Description including the API error message.
        status_code: HTTP status of the failed response, if any.
        code: Notion error code (e.g. ``validation_error``), if any.
    """

    def __init__(
        self, message: str, status_code: int | None = None, code: str | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class RateLimitedError(RemoteStoreError):
    """Raised on HTTP 429 / ``rate_limited`` responses."""

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message, status_code=429, code="rate_limited")
        self.retry_after = retry_after
