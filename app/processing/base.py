from abc import ABC, abstractmethod

from app.processing.models import NotifyResult, StatusSnapshot


class BaseNotifier(ABC):
    """Contract for post-upload processing triggers."""

    @abstractmethod
    def notify(self, file_key: str) -> NotifyResult:
        """Tell the processing service that file_key is ready.

        Returns:
            NotifyResult carrying the tracking identifier.

        Raises:
            NotifyError: if the processing service cannot accept the file.
        """


class BaseStatusSource(ABC):
    """Contract for processing status lookups."""

    @abstractmethod
    def check(self, tracking_id: str) -> StatusSnapshot:
        """Return the current processing status for a tracking identifier.

        Raises:
            StatusCheckError: if the status cannot be retrieved.
        """
