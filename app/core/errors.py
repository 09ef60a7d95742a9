from __future__ import annotations

from typing import Any, Dict

from fastapi import HTTPException

from app.core.logger import get_trace_id

INVALID_PAYLOAD = "ERP_4000"
NOT_FOUND = "ERP_4004"
INVALID_TRANSITION = "ERP_4009"
CONNECTION_INACTIVE = "ERP_4010"
UPSTREAM_FAILURE = "ERP_5020"


def error_response(code: str, message: str, *, details: Any | None = None, trace_id: str | None = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
        }
    }
    if details is not None:
        payload["error"]["details"] = details
    if trace_id is not None:
        payload["error"]["trace_id"] = trace_id
    return payload


def http_error(status_code: int, code: str, message: str, *, details: Any | None = None) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail=error_response(code, message, details=details, trace_id=get_trace_id()),
    )
