import threading
import time
from collections.abc import Callable, Iterator

from app.logging.logger import Log
from app.processing.base import BaseStatusSource
from app.processing.exceptions import ProcessingError
from app.processing.models import AnalysisRecord

RecordCallback = Callable[[AnalysisRecord], None]


class StatusPoller:
    """Lazily polls a status source until a terminal status, the budget or stop().

    Iterating yields one AnalysisRecord per tick. A poller is single-use: once
    it has terminated, further iteration yields nothing.
    """

    def __init__(
        self,
        record: AnalysisRecord,
        source: BaseStatusSource,
        *,
        interval_seconds: float = 2.0,
        max_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._record = record
        self._source = source
        self._interval_seconds = interval_seconds
        self._max_seconds = max_seconds
        self._clock = clock
        self._stopped = threading.Event()
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None

    @property
    def latest(self) -> AnalysisRecord:
        with self._lock:
            return self._record

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def stop(self) -> None:
        """Cancel polling; interrupts a pending wait. Safe from any thread."""
        self._stopped.set()

    def __iter__(self) -> Iterator[AnalysisRecord]:
        started = self._clock()
        try:
            while not self._stopped.wait(self._interval_seconds):
                if self._clock() - started >= self._max_seconds:
                    Log.warning(
                        f"Status polling for {self._record.tracking_id} gave up "
                        f"after {self._max_seconds:g}s"
                    )
                    return
                record = self._tick()
                if self._stopped.is_set():
                    return
                yield record
                if record.status.is_terminal:
                    return
        finally:
            self._stopped.set()

    def start(self, on_update: RecordCallback | None = None) -> "StatusPoller":
        """Consume the poller on a daemon thread, forwarding each snapshot."""

        def _run() -> None:
            for record in self:
                if on_update is not None:
                    on_update(record)

        self._thread = threading.Thread(
            target=_run,
            name=f"status-poller-{self._record.tracking_id}",
            daemon=True,
        )
        self._thread.start()
        return self

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _tick(self) -> AnalysisRecord:
        tracking_id = self._record.tracking_id
        try:
            snapshot = self._source.check(tracking_id)
        except ProcessingError as exc:
            Log.error(f"Error checking analysis status for {tracking_id}: {exc}")
            record = self._record.failed()
        else:
            record = self._record.apply(snapshot)
        with self._lock:
            self._record = record
        Log.debug(f"Analysis {tracking_id}: {record.status.value} {record.progress_percent}%")
        return record
