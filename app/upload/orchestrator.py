import threading
from collections.abc import Callable, Iterable

from app.config.settings import Settings
from app.credentials.http_requester import HttpCredentialRequester
from app.logging.logger import Log
from app.processing.base import BaseStatusSource
from app.processing.factory import ProcessingFactory
from app.processing.models import AnalysisRecord
from app.processing.poller import RecordCallback, StatusPoller
from app.transfer.httpx_agent import HttpxTransferAgent
from app.upload.exceptions import (
    ConcurrentUploadError,
    FileValidationError,
    InvalidTransitionError,
    NoFileSelectedError,
    UploadError,
)
from app.upload.models import (
    Error,
    Idle,
    Success,
    TransferProgress,
    UploadCredentials,
    UploadRequest,
    UploadState,
    Uploading,
)
from app.upload.pipeline import UploadContext, UploadPipeline
from app.upload.steps import NotifyStep, RequestCredentialsStep, TransferStep
from app.upload.validator import validate

CompleteCallback = Callable[[str, str], None]
ErrorCallback = Callable[[str], None]


class UploadOrchestrator:
    """Owns the upload state machine: Idle -> Uploading -> Success | Error.

    All state writes go through a single lock. Each upload attempt gets a
    number; writes from an attempt that is no longer current (after reset())
    are dropped. Only one attempt runs at a time, even across a reset().
    """

    def __init__(
        self,
        pipeline: UploadPipeline,
        *,
        max_size_bytes: int,
        allowed_extensions: Iterable[str],
        status_source: BaseStatusSource | None = None,
        poll_interval_seconds: float = 2.0,
        poll_max_seconds: float = 30.0,
        on_complete: CompleteCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self._pipeline = pipeline
        self._max_size_bytes = max_size_bytes
        self._allowed_extensions = frozenset(ext.lower() for ext in allowed_extensions)
        self._status_source = status_source
        self._poll_interval_seconds = poll_interval_seconds
        self._poll_max_seconds = poll_max_seconds
        self._on_complete = on_complete
        self._on_error = on_error

        self._lock = threading.Lock()
        self._state: UploadState = Idle()
        self._selected: UploadRequest | None = None
        self._credentials: UploadCredentials | None = None
        self._attempt = 0
        self._running = False
        self._pollers: list[StatusPoller] = []

    @property
    def state(self) -> UploadState:
        with self._lock:
            return self._state

    @property
    def selected_file(self) -> UploadRequest | None:
        with self._lock:
            return self._selected

    @property
    def credentials(self) -> UploadCredentials | None:
        with self._lock:
            return self._credentials

    def select_file(self, file: UploadRequest) -> UploadState:
        """Validate and store a file; a failed validation leaves the state at Error."""
        with self._lock:
            if self._running:
                raise ConcurrentUploadError("Cannot select a file while an upload is in progress")
            self._credentials = None
            try:
                validate(file, self._max_size_bytes, self._allowed_extensions)
            except FileValidationError as exc:
                self._selected = None
                self._state = Error(str(exc))
                message = str(exc)
            else:
                self._selected = file
                self._state = Idle()
                Log.info(f"Selected {file.file_name} ({file.size_bytes} bytes)")
                return self._state

        Log.warning(f"Rejected {file.file_name}: {message}")
        self._notify_error(message)
        return Error(message)

    def start_upload(self) -> UploadState:
        """Run credentials -> transfer -> notify for the selected file.

        Blocks until the attempt finishes and returns the resulting state.

        Raises:
            ConcurrentUploadError: if an upload is already in flight.
            NoFileSelectedError: if no validated file is selected.
            InvalidTransitionError: if the last attempt has not been reset.
        """
        with self._lock:
            if self._running:
                raise ConcurrentUploadError("An upload is already in progress")
            if self._selected is None:
                raise NoFileSelectedError("No file selected")
            if not isinstance(self._state, Idle):
                raise InvalidTransitionError(
                    f"Cannot start an upload from state '{self._state.status}'; reset first"
                )
            self._attempt += 1
            attempt = self._attempt
            file = self._selected
            self._state = Uploading(TransferProgress.of(0, file.size_bytes))
            self._running = True

        Log.info(f"Starting upload of {file.file_name} (attempt {attempt})")
        context = UploadContext(
            file=file,
            on_progress=lambda progress: self._apply_progress(attempt, progress),
        )
        try:
            context = self._pipeline.process(context)
        except UploadError as exc:
            return self._fail(attempt, str(exc))
        except Exception as exc:
            Log.exception(f"Unexpected error while uploading {file.file_name}: {exc}")
            return self._fail(attempt, "Upload failed")
        else:
            return self._succeed(attempt, context)
        finally:
            with self._lock:
                self._running = False

    def reset(self) -> UploadState:
        """Return to Idle from any state, discarding the file, credentials and pollers.

        A transfer already in flight is not interrupted; its result is discarded and
        new uploads are refused until it finishes.
        """
        with self._lock:
            self._attempt += 1
            self._state = Idle()
            self._selected = None
            self._credentials = None
            pollers, self._pollers = self._pollers, []
        for poller in pollers:
            poller.stop()
        Log.debug("Upload state reset")
        return Idle()

    def track(
        self,
        on_update: RecordCallback | None = None,
        *,
        background: bool = True,
    ) -> StatusPoller:
        """Start polling analysis status for the current Success state.

        The poller is owned by this orchestrator and stopped on reset() or close().
        With background=False the poller is returned unstarted for the caller to iterate.
        """
        if self._status_source is None:
            raise InvalidTransitionError("No status source configured")
        with self._lock:
            state = self._state
            if not isinstance(state, Success):
                raise InvalidTransitionError(
                    f"Cannot track analysis from state '{state.status}'"
                )
            poller = StatusPoller(
                AnalysisRecord.start(state.tracking_id, state.file_key),
                self._status_source,
                interval_seconds=self._poll_interval_seconds,
                max_seconds=self._poll_max_seconds,
            )
            self._pollers.append(poller)
        if background:
            poller.start(on_update)
        return poller

    def close(self) -> None:
        """Stop every poller started through this orchestrator."""
        with self._lock:
            pollers, self._pollers = self._pollers, []
        for poller in pollers:
            poller.stop()

    def __enter__(self) -> "UploadOrchestrator":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _apply_progress(self, attempt: int, progress: TransferProgress) -> None:
        with self._lock:
            if attempt == self._attempt and isinstance(self._state, Uploading):
                self._state = Uploading(progress)

    def _succeed(self, attempt: int, context: UploadContext) -> UploadState:
        with self._lock:
            if attempt != self._attempt:
                Log.info(f"Discarding result of superseded attempt {attempt}")
                return self._state
            self._credentials = context.credentials
            state = Success(file_key=context.file_key, tracking_id=context.tracking_id)
            self._state = state
        Log.info(f"Upload complete: {state.file_key} -> {state.tracking_id}")
        if self._on_complete is not None:
            self._on_complete(state.file_key, state.tracking_id)
        return state

    def _fail(self, attempt: int, message: str) -> UploadState:
        with self._lock:
            if attempt != self._attempt:
                return self._state
            state = Error(message)
            self._state = state
        self._notify_error(message)
        return state

    def _notify_error(self, message: str) -> None:
        if self._on_error is not None:
            self._on_error(message)


def build_orchestrator(
    settings: Settings,
    *,
    on_complete: CompleteCallback | None = None,
    on_error: ErrorCallback | None = None,
) -> UploadOrchestrator:
    """Build an UploadOrchestrator with all required adapters."""
    requester = HttpCredentialRequester(
        endpoint_url=settings.credential_endpoint_url,
        key_prefix=settings.upload_key_prefix,
        timeout_seconds=settings.credential_timeout_seconds,
    )
    transfer_agent = HttpxTransferAgent(
        timeout_seconds=settings.transfer_timeout_seconds,
        chunk_size=settings.transfer_chunk_size_bytes,
    )
    pipeline = UploadPipeline(
        steps=[
            RequestCredentialsStep(requester),
            TransferStep(transfer_agent),
            NotifyStep(ProcessingFactory.create_notifier(settings)),
        ]
    )
    return UploadOrchestrator(
        pipeline,
        max_size_bytes=settings.max_upload_size_bytes,
        allowed_extensions=settings.allowed_extension_set(),
        status_source=ProcessingFactory.create_status_source(settings),
        poll_interval_seconds=settings.status_poll_interval_seconds,
        poll_max_seconds=settings.status_poll_max_seconds,
        on_complete=on_complete,
        on_error=on_error,
    )
