from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum


class AnalysisStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not AnalysisStatus.PROCESSING


@dataclass(frozen=True)
class NotifyResult:
    tracking_id: str


@dataclass(frozen=True)
class BoundingBox:
    north: float
    south: float
    east: float
    west: float


@dataclass(frozen=True)
class GeometryStatistics:
    points: int = 0
    lines: int = 0
    polygons: int = 0


@dataclass(frozen=True)
class AnalysisSummary:
    """Structured result of a completed analysis."""

    total_features: int
    geometry_types: list[str] = field(default_factory=list)
    bounding_box: BoundingBox | None = None
    statistics: GeometryStatistics = field(default_factory=GeometryStatistics)


@dataclass(frozen=True)
class StatusSnapshot:
    """One answer from a status source."""

    status: AnalysisStatus
    progress: int
    summary: AnalysisSummary | None = None


@dataclass(frozen=True)
class AnalysisRecord:
    """Caller-visible view of a file's downstream analysis."""

    tracking_id: str
    source_file_name: str
    file_key: str
    status: AnalysisStatus = AnalysisStatus.PROCESSING
    progress_percent: int = 0
    result_summary: AnalysisSummary | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def start(cls, tracking_id: str, file_key: str) -> "AnalysisRecord":
        source_file_name = file_key.rsplit("/", 1)[-1] or "Unknown file"
        return cls(tracking_id=tracking_id, source_file_name=source_file_name, file_key=file_key)

    def apply(self, snapshot: StatusSnapshot) -> "AnalysisRecord":
        return replace(
            self,
            status=snapshot.status,
            progress_percent=snapshot.progress,
            result_summary=snapshot.summary or self.result_summary,
        )

    def failed(self) -> "AnalysisRecord":
        return replace(self, status=AnalysisStatus.ERROR)
