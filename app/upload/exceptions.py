class UploadError(Exception):
    """Base exception for all upload-related errors."""


class FileValidationError(UploadError):
    """Raised when a selected file fails local validation."""


class FileTooLargeError(FileValidationError):
    """Raised when a file exceeds the configured size limit."""


class UnsupportedFileTypeError(FileValidationError):
    """Raised when a file extension is not in the allowed set."""


class ConcurrentUploadError(UploadError):
    """Raised when an upload is requested while another one is in flight."""


class NoFileSelectedError(UploadError):
    """Raised when an upload is started without a validated file."""


class InvalidTransitionError(UploadError):
    """Raised when an operation is not allowed from the current upload state."""
