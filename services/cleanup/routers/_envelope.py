"""
Shared response envelope for the trip routers.

  success: {"success": true,  "data": ...,                               "requestId": ...}
  failure: {"success": false, "error": {"code", "message", ...extras},   "requestId": ...}
"""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import Request
from starlette.responses import JSONResponse

from services.cleanup.trips.errors import TripError

STATUS_BY_CODE: dict[str, int] = {
    "NotAuthenticated": 401,
    "AuthFailure": 401,
    "TripNotFound": 404,
    "ValidationFailure": 422,
    "PartialCommitFailure": 502,
    "RemoteUnavailable": 503,
}

# business denials not listed above (AlreadyJoined, TripFull, ...)
DENIAL_STATUS = 409


def request_id(request: Request) -> str:
    return getattr(request.state, "request_id", str(uuid.uuid4()))


def status_for(code: str) -> int:
    return STATUS_BY_CODE.get(code, DENIAL_STATUS)


def ok(request: Request, data: Any) -> dict:
    return {"success": True, "data": data, "requestId": request_id(request)}


def fail(request: Request, status_code: int, code: str, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": {"code": code, "message": message, **extra},
            "requestId": request_id(request),
        },
    )


def error_response(request: Request, exc: TripError) -> JSONResponse:
    """Envelope for any TripError raised out of a route."""
    extra: dict[str, Any] = {}
    errors = getattr(exc, "errors", None)
    if errors is not None:
        extra["fields"] = errors
    if getattr(exc, "retryable", False):
        extra["retryable"] = True
    reason = getattr(exc, "reason", None)
    if reason is not None:
        extra["reason"] = reason.value
        extra["callToAction"] = getattr(exc, "call_to_action", None)
    trip_id = getattr(exc, "trip_id", None)
    if trip_id:
        extra["tripId"] = trip_id
    return fail(request, status_for(exc.code), exc.code, exc.message, **extra)
