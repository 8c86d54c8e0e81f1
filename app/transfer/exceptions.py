from app.upload.exceptions import UploadError


class TransferError(UploadError):
    """Raised when the byte transfer to the object store fails."""


class TransferTimeoutError(TransferError):
    """Raised when the transfer exceeds its time budget."""


class TransferNetworkError(TransferError):
    """Raised on transport-level failures."""


class UpstreamTransferError(TransferError):
    """Raised when the object store answers outside the 2xx range."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"Upload failed with status: {status_code}")
