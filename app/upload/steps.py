from app.credentials.base import BaseCredentialRequester
from app.logging.logger import Log
from app.processing.base import BaseNotifier
from app.transfer.base import BaseTransferAgent
from app.upload.pipeline import UploadContext, UploadStep


class RequestCredentialsStep(UploadStep):
    def __init__(self, requester: BaseCredentialRequester) -> None:
        self._requester = requester

    def run(self, context: UploadContext) -> UploadContext:
        file = context.file
        context.credentials = self._requester.request_credentials(
            file.file_name,
            file.mime_type,
            file.size_bytes,
        )
        Log.info(
            f"Obtained upload credentials for {file.file_name} "
            f"(expires in {context.credentials.expires_in_seconds}s)"
        )
        return context


class TransferStep(UploadStep):
    def __init__(self, transfer_agent: BaseTransferAgent) -> None:
        self._transfer_agent = transfer_agent

    def run(self, context: UploadContext) -> UploadContext:
        if context.credentials is None:
            raise ValueError("UploadContext.credentials must be set before transfer")
        context.file_key = self._transfer_agent.transfer(
            context.file,
            context.credentials,
            context.on_progress,
        )
        return context


class NotifyStep(UploadStep):
    def __init__(self, notifier: BaseNotifier) -> None:
        self._notifier = notifier

    def run(self, context: UploadContext) -> UploadContext:
        if not context.file_key:
            raise ValueError("UploadContext.file_key must be set before notify")
        context.tracking_id = self._notifier.notify(context.file_key).tracking_id
        Log.info(f"File {context.file_key} queued for analysis as {context.tracking_id}")
        return context
