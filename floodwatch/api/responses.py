"""
Standard response envelopes.

Success: {success: true, data, message, error: null, timestamp[, meta]}
Error:   {success: false, data: null, message, error: {code, message, details, statusCode}, timestamp}
"""

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from floodwatch.utils.exceptions import FloodWatchError


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def success_body(data: Any, message: Optional[str] = None, meta: Optional[dict] = None) -> dict:
    body = {
        "success": True,
        "data": data,
        "message": message,
        "error": None,
        "timestamp": utc_timestamp(),
    }
    if meta:
        body["meta"] = meta
    return body


def error_body(
    message: str,
    code: str = "GENERAL_ERROR",
    details: Any = None,
    status_code: int = 500
) -> dict:
    return {
        "success": False,
        "data": None,
        "message": message,
        "error": {
            "code": code,
            "message": message,
            "details": details,
            "statusCode": status_code,
        },
        "timestamp": utc_timestamp(),
    }


def error_response(error: FloodWatchError) -> JSONResponse:
    """Render a FloodWatchError as a structured JSON error."""
    body = error_body(error.message, error.code, error.details, error.status_code)
    return JSONResponse(status_code=error.status_code, content=jsonable_encoder(body))
