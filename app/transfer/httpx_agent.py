import time
from collections.abc import Callable, Iterator

import httpx

from app.logging.logger import Log
from app.transfer.base import BaseTransferAgent, ProgressCallback
from app.transfer.exceptions import (
    TransferNetworkError,
    TransferTimeoutError,
    UpstreamTransferError,
)
from app.transfer.file_key import derive_file_key
from app.upload.models import TransferProgress, UploadCredentials, UploadRequest


class _ProgressReporter:
    """Forwards progress to a callback until the transfer is closed.

    The 100% report is held back until complete() so that a final 100 always
    means the store accepted the bytes.
    """

    def __init__(self, total: int, callback: ProgressCallback | None) -> None:
        self._total = total
        self._callback = callback
        self._closed = False
        self._last_percentage = -1

    def sent(self, bytes_sent: int) -> None:
        if bytes_sent >= self._total:
            return
        self._emit(TransferProgress.of(bytes_sent, self._total))

    def complete(self) -> None:
        self._emit(TransferProgress(bytes_sent=self._total, bytes_total=self._total, percentage=100))
        self.close()

    def close(self) -> None:
        self._closed = True

    def _emit(self, progress: TransferProgress) -> None:
        if self._closed or self._callback is None:
            return
        if progress.percentage < self._last_percentage:
            return
        self._last_percentage = progress.percentage
        self._callback(progress)


class HttpxTransferAgent(BaseTransferAgent):
    """Uploads raw bytes to a presigned URL with a single PUT."""

    def __init__(
        self,
        *,
        timeout_seconds: float = 30.0,
        chunk_size: int = 64 * 1024,
        client: httpx.Client | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._chunk_size = max(1, chunk_size)
        self._client = client if client is not None else httpx.Client()
        self._clock = clock

    def transfer(
        self,
        file: UploadRequest,
        credentials: UploadCredentials,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        total = len(file.content)
        reporter = _ProgressReporter(total, on_progress)
        deadline = self._clock() + self._timeout_seconds
        Log.info(f"Transferring {total} bytes for {file.file_name}")

        try:
            response = self._put(file, credentials, reporter, deadline)
            if self._clock() > deadline:
                raise TransferTimeoutError("Upload timed out")
            if not response.is_success:
                raise UpstreamTransferError(response.status_code)
        except Exception:
            reporter.close()
            raise

        reporter.complete()
        file_key = derive_file_key(credentials.transfer_url, file.file_name)
        Log.info(f"Transfer of {file.file_name} complete: {file_key}")
        return file_key

    def _put(
        self,
        file: UploadRequest,
        credentials: UploadCredentials,
        reporter: _ProgressReporter,
        deadline: float,
    ) -> httpx.Response:
        # Only Content-Type is set explicitly; anything custom would force a CORS preflight.
        headers = {"Content-Type": file.mime_type, "Content-Length": str(len(file.content))}
        try:
            return self._client.put(
                credentials.transfer_url,
                content=self._iter_chunks(file.content, reporter, deadline),
                headers=headers,
                timeout=httpx.Timeout(
                    self._timeout_seconds, read=max(0.0, deadline - self._clock())
                ),
            )
        except httpx.TimeoutException as exc:
            raise TransferTimeoutError("Upload timed out") from exc
        except httpx.TransportError as exc:
            raise TransferNetworkError(f"Upload failed due to network error: {exc}") from exc

    def _iter_chunks(
        self,
        content: bytes,
        reporter: _ProgressReporter,
        deadline: float,
    ) -> Iterator[bytes]:
        for offset in range(0, len(content), self._chunk_size):
            if self._clock() > deadline:
                raise TransferTimeoutError("Upload timed out")
            chunk = content[offset : offset + self._chunk_size]
            yield chunk
            reporter.sent(offset + len(chunk))
