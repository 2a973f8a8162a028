"""Response envelope shared by every endpoint.

Success: ``{"success": true, "message", "data", "timestamp"}``
Failure: ``{"success": false, "message", "code", "data": null, "timestamp"}``

Decimals are rendered as strings so no precision is lost on the wire.
"""

from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from rwa_core.common.types import utc_now


def to_jsonable(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, (list, tuple)):
        return [to_jsonable(item) for item in data]
    if isinstance(data, dict):
        return {key: to_jsonable(value) for key, value in data.items()}
    return data


def success(data: Any = None, message: str = "OK", status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": True,
            "message": message,
            "data": to_jsonable(data),
            "timestamp": utc_now().isoformat(),
        },
    )


def failure(
    code: str,
    message: str,
    status_code: int,
    result_code: str | None = None,
) -> JSONResponse:
    content: dict[str, Any] = {
        "success": False,
        "message": message,
        "code": code,
        "data": None,
        "timestamp": utc_now().isoformat(),
    }
    if result_code:
        content["result_code"] = result_code
    return JSONResponse(status_code=status_code, content=content)
