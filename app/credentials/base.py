from abc import ABC, abstractmethod

from app.upload.models import UploadCredentials


class BaseCredentialRequester(ABC):
    """Contract for all upload-credential adapters."""

    @abstractmethod
    def request_credentials(
        self,
        file_name: str,
        mime_type: str,
        size_bytes: int,
    ) -> UploadCredentials:
        """Obtain one-time upload credentials for a file.

        Args:
            file_name: Bare file name as selected by the user.
            mime_type: Declared MIME type of the file.
            size_bytes: File size in bytes.

        Returns:
            Fully populated UploadCredentials.

        Raises:
            CredentialError: on any failure.
        """
