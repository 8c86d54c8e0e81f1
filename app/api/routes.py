from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from app.api.authority import CredentialAuthorityClient
from app.api.cors import cors_json, error_response, preflight_response
from app.api.presigned import fallback_credentials, shape_credentials
from app.config.settings import Settings
from app.logging.logger import Log
from app.transfer.base import BaseTransferAgent
from app.transfer.exceptions import TransferError
from app.upload.models import UploadCredentials, UploadRequest

router = APIRouter(prefix="/api", tags=["uploads"])


class PresignedUrlBody(BaseModel):
    fileName: str | None = None


async def _presigned_url_body(request: Request) -> PresignedUrlBody | None:
    """Parse the JSON body; None when it cannot be read as a credential request."""
    try:
        data = await request.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return PresignedUrlBody()
    try:
        return PresignedUrlBody.model_validate(data)
    except ValidationError:
        return None


def _authority(request: Request) -> CredentialAuthorityClient:
    return request.app.state.authority_client


def _transfer_agent(request: Request) -> BaseTransferAgent:
    return request.app.state.transfer_agent


def _settings(request: Request) -> Settings:
    return request.app.state.settings


@router.post("/presigned-url")
def presigned_url(
    request: Request,
    body: PresignedUrlBody | None = Depends(_presigned_url_body),
) -> JSONResponse:
    """Forward a credential request to the authority and reshape its answer."""
    if body is None:
        Log.error("Error in presigned URL proxy: request body could not be parsed")
        return error_response("Internal server error", 500)
    if not body.fileName:
        return error_response("fileName is required", 400)

    authority = _authority(request)
    if not authority.configured:
        return error_response("Credential authority is not configured", 503)

    try:
        answer = authority.issue(body.fileName)
        if not answer.ok:
            return error_response(
                f"Credential authority returned {answer.status_code}: {answer.reason}",
                answer.status_code,
            )

        if not answer.data.get("uploadUrl"):
            if _settings(request).credential_fallback_enabled:
                Log.warning(
                    "Credential authority did not return uploadUrl, using fallback credentials"
                )
                return cors_json(fallback_credentials(body.fileName))
            Log.error(f"Credential authority response for {body.fileName} is missing uploadUrl")
            return error_response("Credential authority response is missing uploadUrl", 502)

        return cors_json(shape_credentials(body.fileName, answer.data))
    except Exception as exc:
        Log.exception(f"Error in presigned URL proxy: {exc}")
        return error_response("Internal server error", 500)


@router.options("/presigned-url")
def presigned_url_preflight() -> Response:
    return preflight_response()


@router.post("/upload-proxy")
def upload_proxy(
    request: Request,
    file: UploadFile | None = File(None),
    presignedUrl: str | None = Form(None),
) -> JSONResponse:
    """Relay a multipart upload to the object store through a presigned URL."""
    if file is None or not presignedUrl:
        return error_response("File and presignedUrl are required", 400)

    file_name = file.filename or "upload.kml"
    try:
        upload = UploadRequest.from_bytes(
            file_name,
            file.file.read(),
            mime_type=file.content_type or "",
        )
        credentials = UploadCredentials(transfer_url=presignedUrl, file_key="")
        file_key = _transfer_agent(request).transfer(upload, credentials)
    except TransferError as exc:
        Log.error(f"Upload proxy error for {file_name}: {exc}")
        return error_response("Upload failed", 500)
    except Exception as exc:
        Log.exception(f"Upload proxy error for {file_name}: {exc}")
        return error_response("Upload failed", 500)

    return cors_json(
        {"success": True, "fileKey": file_key, "message": "File uploaded successfully"}
    )


@router.options("/upload-proxy")
def upload_proxy_preflight() -> Response:
    return preflight_response()
