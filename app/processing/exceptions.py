from app.upload.exceptions import UploadError


class ProcessingError(UploadError):
    """Base exception for post-upload processing errors."""


class NotifyError(ProcessingError):
    """Raised when the processing service rejects or cannot receive a notification."""


class StatusCheckError(ProcessingError):
    """Raised when the processing status cannot be retrieved."""
