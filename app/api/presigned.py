"""Shapes credential-authority answers into the /api/presigned-url payload."""

import time
from datetime import datetime, timezone
from typing import Any

from app.upload.models import KML_MIME_TYPE

DEFAULT_EXPIRES_IN = 3600
FALLBACK_BUCKET_URL = "https://mock-s3-bucket.s3.amazonaws.com"


def _metadata_fields(file_name: str) -> dict[str, str]:
    return {
        "x-amz-meta-original-name": file_name.rsplit("/", 1)[-1] or file_name,
        "x-amz-meta-upload-timestamp": str(int(time.time() * 1000)),
    }


def shape_credentials(file_name: str, data: dict[str, Any]) -> dict[str, Any]:
    """Map the authority's {uploadUrl, fileKey, expiresIn, fields} onto the client contract."""
    return {
        "presignedUrl": data["uploadUrl"],
        "fileKey": data.get("fileKey") or file_name,
        "expiresIn": data.get("expiresIn") or DEFAULT_EXPIRES_IN,
        "fields": data.get("fields") or _metadata_fields(file_name),
    }


def fallback_credentials(file_name: str, now: datetime | None = None) -> dict[str, Any]:
    """Synthesize a mock credential set for an authority that returned no uploadUrl.

    The URL points at a placeholder bucket and carries a fake signature, so
    uploads against it fail; only enabled when credential_fallback_enabled is set.
    """
    now = now or datetime.now(timezone.utc)
    amz_date = now.strftime("%Y%m%dT%H%M%SZ")
    presigned_url = (
        f"{FALLBACK_BUCKET_URL}/{file_name}"
        f"?X-Amz-Algorithm=AWS4-HMAC-SHA256&X-Amz-Credential=mock&X-Amz-Date={amz_date}"
        f"&X-Amz-Expires={DEFAULT_EXPIRES_IN}&X-Amz-SignedHeaders=host&X-Amz-Signature=mock"
    )
    return {
        "presignedUrl": presigned_url,
        "fileKey": file_name,
        "expiresIn": DEFAULT_EXPIRES_IN,
        "fields": {"Content-Type": KML_MIME_TYPE, **_metadata_fields(file_name)},
    }
