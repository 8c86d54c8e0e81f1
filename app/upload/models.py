import mimetypes
from dataclasses import dataclass, field
from pathlib import Path

KML_MIME_TYPE = "application/vnd.google-earth.kml"
KMZ_MIME_TYPE = "application/vnd.google-earth.kmz"

mimetypes.add_type(KML_MIME_TYPE + "+xml", ".kml")
mimetypes.add_type(KMZ_MIME_TYPE, ".kmz")


@dataclass(frozen=True)
class UploadRequest:
    """A file selected for upload."""

    file_name: str
    mime_type: str
    size_bytes: int
    content: bytes = field(default=b"", repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.size_bytes < 0:
            raise ValueError("size_bytes must be >= 0")

    @classmethod
    def from_bytes(cls, file_name: str, content: bytes, mime_type: str = "") -> "UploadRequest":
        return cls(
            file_name=file_name,
            mime_type=mime_type or guess_mime_type(file_name),
            size_bytes=len(content),
            content=content,
        )

    @classmethod
    def from_path(cls, path: Path) -> "UploadRequest":
        """Read a file from disk and guess its MIME type from the extension."""
        return cls.from_bytes(path.name, path.read_bytes())


def guess_mime_type(file_name: str) -> str:
    mime_type, _ = mimetypes.guess_type(file_name, strict=False)
    return mime_type or "application/octet-stream"


@dataclass(frozen=True)
class UploadCredentials:
    """One-time credentials issued for a single upload."""

    transfer_url: str
    file_key: str
    expires_in_seconds: int = 3600
    extra_fields: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class TransferProgress:
    """Bytes acknowledged so far for an in-flight transfer."""

    bytes_sent: int = 0
    bytes_total: int = 0
    percentage: int = 0

    @classmethod
    def of(cls, bytes_sent: int, bytes_total: int) -> "TransferProgress":
        if bytes_total <= 0:
            return cls(bytes_sent=bytes_sent, bytes_total=bytes_total, percentage=0)
        percentage = min(100, bytes_sent * 100 // bytes_total)
        return cls(bytes_sent=bytes_sent, bytes_total=bytes_total, percentage=percentage)


@dataclass(frozen=True)
class Idle:
    status: str = "idle"


@dataclass(frozen=True)
class Uploading:
    progress: TransferProgress = field(default_factory=TransferProgress)
    status: str = "uploading"


@dataclass(frozen=True)
class Success:
    file_key: str
    tracking_id: str
    status: str = "success"


@dataclass(frozen=True)
class Error:
    message: str
    status: str = "error"


UploadState = Idle | Uploading | Success | Error
