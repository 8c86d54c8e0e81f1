import time
from urllib.parse import urlsplit


def derive_file_key(transfer_url: str, file_name: str) -> str:
    """Take the last path segment of the transfer URL, ignoring the query string.

    Falls back to input_kml_files/{epoch_ms}-{file_name} when the URL has no
    usable segment.
    """
    path = urlsplit(transfer_url).path
    segment = path.rsplit("/", 1)[-1]
    if segment:
        return segment
    return f"input_kml_files/{int(time.time() * 1000)}-{file_name}"
