"""
Trip list, detail, participation and creation.

Endpoints:
  GET   /trips?status=&q=        -- filtered projection of the live view (status defaults to upcoming)
  POST  /trips/refresh           -- pull-to-refresh: re-fetch the whole collection
  GET   /trips/{id}              -- one trip + capacity + what the caller may do with it
  POST  /trips/{id}/join         -- add the caller to participants
  POST  /trips/{id}/cancel       -- remove the caller from participants
  POST  /trips/{id}/complete     -- mark the trip completed (participants only)
  POST  /trips                   -- multipart form + ``cover`` file; two-phase create

Auth: the optional X-User-Id header carries the actor id (set by the upstream
auth layer). A missing header is a signed-out caller; the engine, not this
router, decides what that caller may do.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, File, Form, Header, Query, Request, UploadFile

from services.cleanup.routers._envelope import fail, ok, status_for
from services.cleanup.trips.creation import CoverAsset, TripForm
from services.cleanup.trips.errors import RemoteUnavailable
from services.cleanup.trips.projection import StatusFilter
from services.cleanup.trips.service import (
    ActionResult,
    TripService,
    trip_detail_dict,
    trip_to_dict,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/trips", tags=["trips"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _service(request: Request) -> TripService:
    return request.app.state.trip_service


def _actor(x_user_id: Optional[str]) -> Optional[str]:
    if not x_user_id or not x_user_id.strip():
        return None
    return x_user_id.strip()


def _parse_date(raw: Optional[str]) -> Optional[datetime]:
    """ISO-8601 date or datetime; anything else reads as missing."""
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.strip())
    except ValueError:
        return None


def _action_response(request: Request, result: ActionResult, actor_id: Optional[str]):
    trip = trip_detail_dict(result.trip, actor_id) if result.trip else None
    if result.ok:
        return ok(request, {"result": result.to_dict(), "trip": trip})
    return fail(
        request,
        status_for(result.code),
        result.code,
        result.message,
        reason=result.reason.value if result.reason else None,
        callToAction=result.call_to_action,
        retryable=result.retryable,
        trip=trip,
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@router.get("")
async def list_trips(
    request: Request,
    status: StatusFilter = Query(StatusFilter.UPCOMING),
    q: str = Query("", max_length=200),
) -> dict:
    service = _service(request)
    state = service.sync.state
    trips = [trip_to_dict(t) for t in service.list_trips(status, q)]
    return ok(
        request,
        {
            "trips": trips,
            "count": len(trips),
            "status": status.value,
            "query": q,
            "loading": state.loading,
            "stale": state.stale,
            "error": state.error,
        },
    )


@router.post("/refresh")
async def refresh_trips(request: Request):
    service = _service(request)
    try:
        trips = await service.refresh()
    except RemoteUnavailable as exc:
        state = service.sync.state
        return fail(
            request, 503, exc.code, state.error or exc.message,
            retryable=True, stale=state.stale,
        )
    return ok(request, {"count": len(trips), "refreshedAt": datetime.now(timezone.utc).isoformat()})


@router.get("/{trip_id}")
async def get_trip(
    trip_id: str,
    request: Request,
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
):
    detail = await _service(request).trip_detail(trip_id, _actor(x_user_id))
    return ok(request, detail)


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@router.post("/{trip_id}/join")
async def join_trip(
    trip_id: str,
    request: Request,
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
):
    actor_id = _actor(x_user_id)
    result = await _service(request).join(trip_id, actor_id)
    return _action_response(request, result, actor_id)


@router.post("/{trip_id}/cancel")
async def cancel_trip(
    trip_id: str,
    request: Request,
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
):
    actor_id = _actor(x_user_id)
    result = await _service(request).cancel(trip_id, actor_id)
    return _action_response(request, result, actor_id)


@router.post("/{trip_id}/complete")
async def complete_trip(
    trip_id: str,
    request: Request,
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
):
    actor_id = _actor(x_user_id)
    result = await _service(request).complete(trip_id, actor_id)
    return _action_response(request, result, actor_id)


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


@router.post("", status_code=201)
async def create_trip(
    request: Request,
    title: str = Form(""),
    location: str = Form(""),
    organizer: str = Form(""),
    cleanupGoal: str = Form(""),
    maxParticipants: str = Form(""),
    date: Optional[str] = Form(None),
    cover: Optional[UploadFile] = File(None),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
):
    asset = None
    if cover is not None:
        content = await cover.read()
        if content:
            asset = CoverAsset(
                content=content,
                file_name=cover.filename,
                mime_type=cover.content_type,
            )

    form = TripForm(
        title=title,
        location=location,
        organizer=organizer,
        cleanup_goal=cleanupGoal,
        max_participants=maxParticipants,
        date=_parse_date(date),
        cover=asset,
    )
    trip = await _service(request).create_trip(form)

    logger.info("trip_created trip=%s by=%s", trip.id, _actor(x_user_id))
    return ok(request, trip_detail_dict(trip, _actor(x_user_id)))
