"""Response envelope shared by every route and exception handler.

    {"code": 0, "message": "success", "data": {...}, "timestamp": "...", "request_id": "req_..."}

code 0 is success; any other code is an AppError code and data is null. The
request_id is the one RequestLogMiddleware stored on request.state, so the
body and the X-Request-ID header always carry the same id. Outside a request
(or before the middleware ran) a fresh id is generated.
"""

import uuid
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.ss_common.datetime_utils import utc_now


def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    data: Any = None
    timestamp: str = Field(default_factory=lambda: utc_now().isoformat())
    request_id: str = Field(default_factory=new_request_id)


def _request_id(request: Request | None) -> str:
    if request is None:
        return new_request_id()
    return getattr(request.state, "request_id", None) or new_request_id()


def success_response(request: Request | None, data: Any = None) -> ApiResponse:
    """Wrap a payload; pydantic models are dumped in JSON mode (Decimal → str)."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    return ApiResponse(data=data, request_id=_request_id(request))


def error_response(
    request: Request | None, code: int, message: str, http_status: int
) -> JSONResponse:
    body = ApiResponse(code=code, message=message, request_id=_request_id(request))
    return JSONResponse(status_code=http_status, content=body.model_dump())
