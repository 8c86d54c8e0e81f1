"""Stand-in processing backend.

There is no real analysis service yet: notification waits a fixed delay and
hands out a fresh tracking id, and status checks roll a biased die. Both
classes are test doubles as much as development defaults; a real backend
implements BaseNotifier and BaseStatusSource and registers in ProcessingFactory.
"""

import random
import string
import time
from collections.abc import Callable
from typing import ClassVar

from app.logging.logger import Log
from app.processing.base import BaseNotifier, BaseStatusSource
from app.processing.models import (
    AnalysisStatus,
    AnalysisSummary,
    BoundingBox,
    GeometryStatistics,
    NotifyResult,
    StatusSnapshot,
)

_TRACKING_ALPHABET = string.ascii_lowercase + string.digits


def new_tracking_id(rng: random.Random | None = None) -> str:
    """Build an id of the form analysis-{epoch_ms}-{9 base36 chars}."""
    rng = rng or random.Random()
    suffix = "".join(rng.choice(_TRACKING_ALPHABET) for _ in range(9))
    return f"analysis-{int(time.time() * 1000)}-{suffix}"


class SimulatedNotifier(BaseNotifier):
    def __init__(
        self,
        *,
        delay_seconds: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._delay_seconds = delay_seconds
        self._sleep = sleep
        self._rng = rng or random.Random()

    def notify(self, file_key: str) -> NotifyResult:
        if self._delay_seconds > 0:
            self._sleep(self._delay_seconds)
        tracking_id = new_tracking_id(self._rng)
        Log.info(f"Processing requested for {file_key}: {tracking_id}")
        return NotifyResult(tracking_id=tracking_id)


class SimulatedStatusSource(BaseStatusSource):
    """Random status biased three to one toward processing."""

    STATUSES: ClassVar[list[AnalysisStatus]] = [
        AnalysisStatus.PROCESSING,
        AnalysisStatus.PROCESSING,
        AnalysisStatus.PROCESSING,
        AnalysisStatus.COMPLETED,
    ]
    GEOMETRY_TYPES: ClassVar[list[str]] = ["Point", "LineString", "Polygon"]
    CENTER_LAT: ClassVar[float] = 40.7128
    CENTER_LNG: ClassVar[float] = -74.0060

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def check(self, tracking_id: str) -> StatusSnapshot:
        status = self._rng.choice(self.STATUSES)
        if status is AnalysisStatus.COMPLETED:
            Log.debug(f"Simulated analysis {tracking_id} completed")
            return StatusSnapshot(status=status, progress=100, summary=self._summary())
        return StatusSnapshot(status=status, progress=self._rng.randint(20, 99))

    def _summary(self) -> AnalysisSummary:
        rng = self._rng
        return AnalysisSummary(
            total_features=rng.randint(10, 109),
            geometry_types=self.GEOMETRY_TYPES[: rng.randint(1, 3)],
            bounding_box=BoundingBox(
                north=self.CENTER_LAT + rng.random() * 0.1,
                south=self.CENTER_LAT - rng.random() * 0.1,
                east=self.CENTER_LNG + rng.random() * 0.1,
                west=self.CENTER_LNG - rng.random() * 0.1,
            ),
            statistics=GeometryStatistics(
                points=rng.randint(0, 49),
                lines=rng.randint(0, 29),
                polygons=rng.randint(0, 19),
            ),
        )
