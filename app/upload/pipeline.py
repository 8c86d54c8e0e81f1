from abc import ABC, abstractmethod
from dataclasses import dataclass

from app.logging.logger import Log
from app.transfer.base import ProgressCallback
from app.upload.models import UploadCredentials, UploadRequest


@dataclass(slots=True)
class UploadContext:
    file: UploadRequest
    on_progress: ProgressCallback | None = None
    credentials: UploadCredentials | None = None
    file_key: str = ""
    tracking_id: str = ""


class UploadStep(ABC):
    @abstractmethod
    def run(self, context: UploadContext) -> UploadContext:
        raise NotImplementedError


class UploadPipeline:
    """Runs upload steps in order; the first failure halts the sequence.

    Pipeline: request credentials -> transfer -> notify.
    """

    def __init__(self, steps: list[UploadStep]) -> None:
        self._steps = steps

    def process(self, context: UploadContext) -> UploadContext:
        for step in self._steps:
            try:
                context = step.run(context)
            except Exception as exc:
                Log.error(
                    f"Upload of {context.file.file_name} failed in "
                    f"{type(step).__name__}: {exc}"
                )
                raise
        return context
