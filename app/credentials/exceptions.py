from app.upload.exceptions import UploadError


class CredentialError(UploadError):
    """Raised when upload credentials cannot be obtained."""


class PayloadTooLargeError(CredentialError):
    """Raised when the file exceeds the credential size ceiling."""


class UnsupportedMediaTypeError(CredentialError):
    """Raised when the file is neither KML nor KMZ."""


class UpstreamCredentialError(CredentialError):
    """Raised when the credential endpoint answers with a non-success status."""

    def __init__(self, status_code: int, message: str = "") -> None:
        self.status_code = status_code
        super().__init__(
            message or f"Failed to get presigned URL: credential endpoint returned {status_code}"
        )


class MalformedCredentialResponseError(CredentialError):
    """Raised when a success response lacks the transfer URL."""


class CredentialNetworkError(CredentialError):
    """Raised when the credential endpoint cannot be reached."""
