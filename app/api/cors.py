from typing import Any

from fastapi import Response
from fastapi.responses import JSONResponse

CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def cors_json(content: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=content, status_code=status_code, headers=CORS_HEADERS)


def error_response(message: str, status_code: int) -> JSONResponse:
    return cors_json({"error": message}, status_code=status_code)


def preflight_response() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)
