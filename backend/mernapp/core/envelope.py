"""Response Envelope — the single JSON shape for every API response.

Invariants:
    - Success: {"success": true, "data": ...}
    - Failure: {"success": false, "error": {"status", "code", "message", "category", "detail"?}}
    - detail key present only when there is detail to report

Design Decisions:
    - jsonable_encoder for data: datetimes, UUIDs and ORM-free dicts serialize uniformly
"""

from typing import Any

from fastapi.encoders import jsonable_encoder
from starlette.responses import JSONResponse


def send_success_response(
    data: Any = None, status_code: int = 200,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": True, "data": jsonable_encoder(data)},
        headers=headers,
    )


def send_error_response(
    status_code: int,
    code: str,
    message: str,
    category: str,
    detail: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    error: dict[str, Any] = {
        "status": status_code,
        "code": code,
        "message": message,
        "category": category,
    }
    if detail is not None:
        error["detail"] = jsonable_encoder(detail)
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error},
        headers=headers or None,
    )
