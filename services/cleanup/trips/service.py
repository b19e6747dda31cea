"""
TripService: the surface the presentation layer talks to.

  list_trips(status, query)    filtered/sorted projection of the live view
  new_browser(status)          debounced list state over the live view
  trip_detail(trip_id, actor)  one trip + capacity fields + actor membership
  join / cancel / complete     engine decision -> sync mutation -> ActionResult
  create_trip(form)            TripCreationWorkflow, then read-your-write
  refresh()                    pull-to-refresh

Every action returns an ActionResult with a user-facing message. Business
denials and transport failures are recovered here; nothing fails silently.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable

from services.cleanup.stores.base import BlobStore, DocumentStore
from services.cleanup.trips.creation import TripCreationWorkflow, TripForm
from services.cleanup.trips.engine import (
    DenialReason,
    TripAction,
    capacity_of,
    decide,
    require,
)
from services.cleanup.trips.errors import (
    PreconditionDenied,
    RemoteUnavailable,
    TripNotFound,
)
from services.cleanup.trips.models import Trip
from services.cleanup.trips.projection import (
    DEBOUNCE_WINDOW_S,
    StatusFilter,
    TripBrowser,
    TripProjection,
    project,
)
from services.cleanup.trips.sync import TripSync

logger = logging.getLogger(__name__)

RETRY_MESSAGES: dict[TripAction, str] = {
    TripAction.JOIN: "We could not add you to the trip. Please try again.",
    TripAction.CANCEL: "We could not update your sign-up. Please try again.",
    TripAction.COMPLETE: "We could not update the trip. Please try again.",
}

_PAST_TENSE = {
    TripAction.JOIN: "joined",
    TripAction.CANCEL: "cancelled",
    TripAction.COMPLETE: "completed",
}


@dataclass(frozen=True)
class ActionResult:
    ok: bool
    code: str
    message: str
    trip: Trip | None = None
    reason: DenialReason | None = None
    call_to_action: str | None = None
    retryable: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "code": self.code,
            "message": self.message,
            "reason": self.reason.value if self.reason else None,
            "callToAction": self.call_to_action,
            "retryable": self.retryable,
        }


def trip_to_dict(trip: Trip) -> dict[str, Any]:
    data = trip.model_dump(mode="json", by_alias=True)
    data["capacity"] = capacity_of(trip).to_dict()
    return data


def trip_detail_dict(trip: Trip, actor_id: str | None) -> dict[str, Any]:
    """Trip + derived capacity + what ``actor_id`` may do with it."""
    data = trip_to_dict(trip)
    data["viewer"] = {
        "signedIn": bool(actor_id),
        "isJoined": trip.has_participant(actor_id),
        "canJoin": decide(trip, actor_id, TripAction.JOIN).allow,
        "canCancel": decide(trip, actor_id, TripAction.CANCEL).allow,
        "canComplete": decide(trip, actor_id, TripAction.COMPLETE).allow,
    }
    return data


class TripService:
    def __init__(
        self,
        sync: TripSync,
        store: DocumentStore,
        blobs: BlobStore,
        images_prefix: str = "tripImages",
        max_cover_bytes: int | None = None,
        today: Callable[[], date] = date.today,
        debounce_s: float = DEBOUNCE_WINDOW_S,
    ) -> None:
        self._sync = sync
        self._store = store
        self._blobs = blobs
        self._images_prefix = images_prefix
        self._max_cover_bytes = max_cover_bytes
        self._today = today
        self._debounce_s = debounce_s

    @property
    def sync(self) -> TripSync:
        return self._sync

    # -- reads --------------------------------------------------------------

    def list_trips(
        self,
        status_filter: StatusFilter | str = StatusFilter.UPCOMING,
        query: str = "",
    ) -> TripProjection:
        return project(self._sync.trips, status_filter, query)

    def new_browser(
        self,
        status_filter: StatusFilter | str = StatusFilter.UPCOMING,
        on_change: Callable[[TripProjection], None] | None = None,
    ) -> TripBrowser:
        """List state for one consumer, debounced with the configured window."""
        return TripBrowser(self._sync, status_filter, self._debounce_s, on_change)

    async def get_trip(self, trip_id: str) -> Trip:
        """From the view when present, otherwise a point read."""
        trip = self._sync.get(trip_id)
        if trip is not None:
            return trip
        return await self._sync.reload(trip_id)

    async def trip_detail(self, trip_id: str, actor_id: str | None) -> dict[str, Any]:
        return trip_detail_dict(await self.get_trip(trip_id), actor_id)

    async def refresh(self) -> tuple[Trip, ...]:
        return await self._sync.refresh()

    # -- actions ------------------------------------------------------------

    async def join(self, trip_id: str, actor_id: str | None) -> ActionResult:
        return await self._act(trip_id, actor_id, TripAction.JOIN)

    async def cancel(self, trip_id: str, actor_id: str | None) -> ActionResult:
        return await self._act(trip_id, actor_id, TripAction.CANCEL)

    async def complete(self, trip_id: str, actor_id: str | None) -> ActionResult:
        return await self._act(trip_id, actor_id, TripAction.COMPLETE)

    async def _act(self, trip_id: str, actor_id: str | None, action: TripAction) -> ActionResult:
        try:
            trip = await self.get_trip(trip_id)
            decision = require(trip, actor_id, action)
            fresh = await self._sync.mutate(trip_id, decision.delta)
        except PreconditionDenied as exc:
            logger.info(
                "trip_action_denied action=%s trip=%s actor=%s reason=%s",
                action.value, trip_id, actor_id, exc.reason.value,
            )
            return ActionResult(
                ok=False,
                code=exc.code,
                message=exc.message,
                trip=self._sync.get(trip_id),
                reason=exc.reason,
                call_to_action=exc.call_to_action,
            )
        except RemoteUnavailable as exc:
            logger.warning(
                "trip_action_failed action=%s trip=%s actor=%s error=%s",
                action.value, trip_id, actor_id, exc,
            )
            return ActionResult(
                ok=False,
                code=exc.code,
                message=RETRY_MESSAGES[action],
                trip=self._sync.get(trip_id),
                retryable=True,
            )
        except TripNotFound as exc:
            return ActionResult(ok=False, code=exc.code, message=exc.message)

        logger.info("trip_%s trip=%s actor=%s", _PAST_TENSE[action], trip_id, actor_id)
        return ActionResult(ok=True, code=_PAST_TENSE[action], message=decision.message, trip=fresh)

    # -- creation -----------------------------------------------------------

    def new_workflow(self) -> TripCreationWorkflow:
        return TripCreationWorkflow(
            self._store,
            self._blobs,
            images_prefix=self._images_prefix,
            max_cover_bytes=self._max_cover_bytes,
            today=self._today,
        )

    async def create_trip(self, form: TripForm) -> Trip:
        """
        Publish a new trip.

        Raises ValidationFailure, RemoteUnavailable, or PartialCommitFailure.
        """
        trip = await self.new_workflow().submit(form)
        try:
            return await self._sync.reload(trip.id)
        except (RemoteUnavailable, TripNotFound) as exc:
            # already published; the subscription will deliver it
            logger.warning("trip_created_reload_failed trip=%s error=%s", trip.id, exc)
            return trip

