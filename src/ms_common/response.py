"""Unified API response wrapper.

All HTTP endpoints return this format:
{
    "code": 0,           // 0=success, non-0=error code
    "message": "success",
    "data": { ... },     // null on error
    "timestamp": 1735689600000,
    "request_id": "..."
}
"""

import uuid
from typing import Any

from fastapi import Request
from pydantic import BaseModel, Field

from src.ms_common.datetime_utils import epoch_ms


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    data: Any = None
    timestamp: int = Field(default_factory=epoch_ms)
    request_id: str = Field(default_factory=lambda: f"req_{uuid.uuid4().hex[:12]}")


def success_response(data: Any = None, request: Request | None = None) -> ApiResponse:
    """Wrap data; reuse the middleware's request id when a request is given."""
    resp = ApiResponse(code=0, message="success", data=data)
    if request is not None:
        resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


def error_response(code: int, message: str) -> ApiResponse:
    return ApiResponse(code=code, message=message, data=None)
