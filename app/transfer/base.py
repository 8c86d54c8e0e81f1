from abc import ABC, abstractmethod
from collections.abc import Callable

from app.upload.models import TransferProgress, UploadCredentials, UploadRequest

ProgressCallback = Callable[[TransferProgress], None]


class BaseTransferAgent(ABC):
    """Contract for all object-store transfer adapters."""

    @abstractmethod
    def transfer(
        self,
        file: UploadRequest,
        credentials: UploadCredentials,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Upload file bytes using the issued credentials.

        Args:
            file: The file to upload.
            credentials: Credentials holding the presigned transfer URL.
            on_progress: Called synchronously as bytes are handed to the transport.

        Returns:
            The storage key of the uploaded object.

        Raises:
            TransferError: on any failure.
        """
