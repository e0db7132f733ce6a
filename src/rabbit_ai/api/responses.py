"""Response envelope shared by every endpoint.

All JSON bodies have the shape {"code": <http status>, "message": str, "data": ...}.
"""

from __future__ import annotations

from typing import Any

from fastapi.responses import ORJSONResponse


def envelope(data: Any = None, message: str = "Success", code: int = 200) -> dict[str, Any]:
    body: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        body["data"] = data
    return body


def ok(data: Any = None, message: str = "Success", status_code: int = 200) -> ORJSONResponse:
    return ORJSONResponse(envelope(data, message, status_code), status_code=status_code)
