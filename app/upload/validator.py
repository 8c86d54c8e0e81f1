from collections.abc import Iterable

from app.upload.exceptions import FileTooLargeError, UnsupportedFileTypeError
from app.upload.models import UploadRequest


def file_extension(file_name: str) -> str:
    """Return the lowercase suffix after the last dot, including the dot."""
    _, dot, suffix = file_name.rpartition(".")
    if not dot:
        return ""
    return f".{suffix.lower()}"


def validate(
    file: UploadRequest,
    max_size_bytes: int,
    allowed_extensions: Iterable[str],
) -> None:
    """Check a file's size and extension before any network call.

    Raises:
        FileTooLargeError: if size_bytes exceeds max_size_bytes.
        UnsupportedFileTypeError: if the extension is not allowed.
    """
    if file.size_bytes > max_size_bytes:
        limit_mb = max_size_bytes / (1024 * 1024)
        raise FileTooLargeError(f"File size must be less than {limit_mb:g}MB")

    allowed = sorted(ext.lower() for ext in allowed_extensions)
    if file_extension(file.file_name) not in allowed:
        raise UnsupportedFileTypeError(f"Only {', '.join(allowed)} files are allowed")
