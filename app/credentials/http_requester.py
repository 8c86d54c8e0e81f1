import time
from typing import Any

import httpx

from app.credentials.base import BaseCredentialRequester
from app.credentials.exceptions import (
    CredentialNetworkError,
    MalformedCredentialResponseError,
    PayloadTooLargeError,
    UnsupportedMediaTypeError,
    UpstreamCredentialError,
)
from app.logging.logger import Log
from app.upload.models import KML_MIME_TYPE, KMZ_MIME_TYPE, UploadCredentials

MAX_CREDENTIAL_SIZE_BYTES = 50 * 1024 * 1024
DEFAULT_EXPIRES_IN_SECONDS = 3600


def is_kml_file(file_name: str, mime_type: str) -> bool:
    """KML/KMZ check used by the credential side: MIME type or extension may match."""
    name = file_name.lower()
    return (
        KML_MIME_TYPE in mime_type
        or KMZ_MIME_TYPE in mime_type
        or name.endswith(".kml")
        or name.endswith(".kmz")
    )


class HttpCredentialRequester(BaseCredentialRequester):
    """Requests presigned upload credentials from the credential proxy endpoint."""

    def __init__(
        self,
        *,
        endpoint_url: str,
        key_prefix: str = "input_kml_files/",
        timeout_seconds: float = 10,
        client: httpx.Client | None = None,
    ) -> None:
        self._endpoint_url = endpoint_url
        self._key_prefix = key_prefix
        self._client = client if client is not None else httpx.Client(timeout=timeout_seconds)

    def request_credentials(
        self,
        file_name: str,
        mime_type: str,
        size_bytes: int,
    ) -> UploadCredentials:
        if size_bytes > MAX_CREDENTIAL_SIZE_BYTES:
            raise PayloadTooLargeError("File size exceeds 50MB limit")
        if not is_kml_file(file_name, mime_type):
            raise UnsupportedMediaTypeError("Only KML and KMZ files are allowed")

        try:
            response = self._client.post(
                self._endpoint_url,
                json={"fileName": f"{self._key_prefix}{file_name}"},
            )
        except httpx.HTTPError as exc:
            raise CredentialNetworkError(
                f"Failed to request presigned URL: {exc}"
            ) from exc

        if not response.is_success:
            raise UpstreamCredentialError(
                response.status_code,
                f"Failed to get presigned URL: {response.status_code} {response.reason_phrase}",
            )

        data = self._parse_body(response)
        Log.debug(f"Credential endpoint response: {data}")
        presigned_url = data.get("presignedUrl")
        if not presigned_url:
            raise MalformedCredentialResponseError(
                "Invalid response from server: missing presignedUrl"
            )
        return self._build_credentials(data, presigned_url, file_name, mime_type)

    @staticmethod
    def _parse_body(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedCredentialResponseError(
                f"Invalid response from server: {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise MalformedCredentialResponseError(
                "Invalid response from server: expected a JSON object"
            )
        return data

    @staticmethod
    def _build_credentials(
        data: dict[str, Any],
        presigned_url: str,
        file_name: str,
        mime_type: str,
    ) -> UploadCredentials:
        timestamp_ms = int(time.time() * 1000)
        fields = data.get("fields") or {
            "Content-Type": mime_type,
            "x-amz-meta-original-name": file_name,
            "x-amz-meta-upload-timestamp": str(timestamp_ms),
        }
        if not isinstance(fields, dict):
            raise MalformedCredentialResponseError(
                "Invalid response from server: fields must be an object"
            )
        try:
            expires_in = int(data.get("expiresIn") or DEFAULT_EXPIRES_IN_SECONDS)
        except (TypeError, ValueError) as exc:
            raise MalformedCredentialResponseError(
                f"Invalid response from server: bad expiresIn {data.get('expiresIn')!r}"
            ) from exc
        return UploadCredentials(
            transfer_url=presigned_url,
            file_key=data.get("fileKey") or f"kml-uploads/{timestamp_ms}-{file_name}",
            expires_in_seconds=expires_in,
            extra_fields={str(k): str(v) for k, v in fields.items()},
        )
