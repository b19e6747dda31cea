"""
Trip Synchronization Layer.

Sole owner and writer of the local materialized view of the trip collection.
Two producers feed the same "replace the whole view" event:

  - the live subscription (ordered by date ascending), on every remote change
  - refresh(), a one-shot fetch of the full ordered collection on demand

Single-document mutations use an explicit two-step protocol:

  1. update_document(trip_id, delta)        (associative add/remove for participants)
  2. get_document(trip_id) and replace that trip's entry in the view

Step 2 gives the acting client its own write immediately, whether or not the
subscription push has arrived yet. A later push simply replaces the view again.

Failure policy (stale-but-available):
  - subscription failure: record a retryable error, mark the view stale, keep
    the last-known-good trips
  - refresh failure: same, and raise RemoteUnavailable to the caller
  - mutation failure: raise RemoteUnavailable; the view is untouched
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from services.cleanup.stores.base import (
    TRIPS_BY_DATE,
    CollectionQuery,
    DocumentStore,
    StoredDocument,
    Subscription,
)
from services.cleanup.trips.errors import RemoteUnavailable, TripNotFound
from services.cleanup.trips.models import SERVER_TIMESTAMP, Trip

logger = logging.getLogger(__name__)

SUBSCRIPTION_ERROR_MESSAGE = "We couldn't load trips right now. Pull to refresh to try again."
REFRESH_ERROR_MESSAGE = "Unable to refresh trips right now. Please try again later."

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class ViewState:
    """Snapshot of the materialized view handed to listeners."""
    trips: tuple[Trip, ...]
    loading: bool
    stale: bool
    error: str | None


ViewListener = Callable[[ViewState], None]


def _date_key(trip: Trip) -> datetime:
    if trip.date is None:
        return _FAR_FUTURE
    if trip.date.tzinfo is None:
        return trip.date.replace(tzinfo=timezone.utc)
    return trip.date


def _to_trips(docs: list[StoredDocument]) -> list[Trip]:
    trips: list[Trip] = []
    for doc in docs:
        try:
            trips.append(Trip.from_document(doc.id, doc.data))
        except ValueError as exc:
            # pydantic.ValidationError is a ValueError
            logger.warning("trip_document_skipped id=%s error=%s", doc.id, exc)
    return trips


class TripSync:
    """
    Materialized view of the trip collection.

    Usage:
        sync = TripSync(store)
        await sync.start()                 # live subscription
        await sync.refresh()               # pull-to-refresh
        trip = await sync.mutate(trip_id, decision.delta)
        ...
        await sync.close()                 # teardown
    """

    def __init__(self, store: DocumentStore, query: CollectionQuery = TRIPS_BY_DATE) -> None:
        self._store = store
        self._query = query
        self._trips: list[Trip] = []
        self._loading = True
        self._stale = False
        self._error: str | None = None
        self._subscription: Subscription | None = None
        self._listeners: list[ViewListener] = []

    # -- view ---------------------------------------------------------------

    @property
    def trips(self) -> tuple[Trip, ...]:
        return tuple(self._trips)

    @property
    def state(self) -> ViewState:
        return ViewState(
            trips=self.trips,
            loading=self._loading,
            stale=self._stale,
            error=self._error,
        )

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None

    def get(self, trip_id: str) -> Trip | None:
        for trip in self._trips:
            if trip.id == trip_id:
                return trip
        return None

    def add_listener(self, listener: ViewListener) -> Callable[[], None]:
        """Register a view listener. Returns a callable that removes it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _notify(self) -> None:
        state = self.state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("trip_view_listener_failed")

    def _replace_view(self, trips: list[Trip]) -> None:
        self._trips = trips
        self._loading = False
        self._stale = False
        self._error = None
        self._notify()

    def _mark_failed(self, message: str) -> None:
        self._loading = False
        self._stale = True
        self._error = message
        self._notify()

    # -- producers ----------------------------------------------------------

    async def start(self) -> None:
        """(Re)subscribe to the collection, replacing any standing subscription."""
        self._unsubscribe()
        try:
            self._subscription = await self._store.subscribe_collection(
                self._query, self._on_snapshot, self._on_error,
            )
        except RemoteUnavailable as exc:
            logger.warning("trip_subscription_failed error=%s", exc)
            self._mark_failed(SUBSCRIPTION_ERROR_MESSAGE)
            return
        logger.info("trip_subscription_started order_by=%s", self._query.order_by)

    def _on_snapshot(self, docs: list[StoredDocument]) -> None:
        self._replace_view(_to_trips(docs))
        logger.debug("trip_view_replaced source=subscription count=%d", len(self._trips))

    def _on_error(self, exc: Exception) -> None:
        logger.warning("trip_subscription_failed error=%s", exc)
        self._mark_failed(SUBSCRIPTION_ERROR_MESSAGE)

    async def refresh(self) -> tuple[Trip, ...]:
        """Re-fetch the full ordered collection and replace the view."""
        try:
            docs = await self._store.get_collection(self._query)
        except RemoteUnavailable:
            self._mark_failed(REFRESH_ERROR_MESSAGE)
            raise
        self._replace_view(_to_trips(docs))
        logger.info("trip_view_replaced source=refresh count=%d", len(self._trips))
        return self.trips

    # -- single-document mutation --------------------------------------------

    async def mutate(self, trip_id: str, delta: dict[str, Any]) -> Trip:
        """Apply ``delta`` remotely, then point-read the trip back into the view."""
        try:
            await self._store.update_document(trip_id, {**delta, "updatedAt": SERVER_TIMESTAMP})
        except TripNotFound:
            self._drop(trip_id)
            raise
        return await self.reload(trip_id)

    async def reload(self, trip_id: str) -> Trip:
        doc = await self._store.get_document(trip_id)
        if doc is None:
            self._drop(trip_id)
            raise TripNotFound(trip_id)
        try:
            fresh = Trip.from_document(doc.id, doc.data)
        except ValueError as exc:
            logger.warning("trip_document_skipped id=%s error=%s", doc.id, exc)
            self._drop(trip_id)
            raise TripNotFound(trip_id) from exc
        self._put(fresh)
        return fresh

    def _put(self, fresh: Trip) -> None:
        for i, trip in enumerate(self._trips):
            if trip.id == fresh.id:
                self._trips[i] = fresh
                break
        else:
            # not pushed yet: insert by date, undated trips last
            position = len(self._trips)
            for i, trip in enumerate(self._trips):
                if _date_key(fresh) < _date_key(trip):
                    position = i
                    break
            self._trips.insert(position, fresh)
        self._notify()

    def _drop(self, trip_id: str) -> None:
        before = len(self._trips)
        self._trips = [t for t in self._trips if t.id != trip_id]
        if len(self._trips) != before:
            self._notify()

    # -- teardown -------------------------------------------------------------

    def _unsubscribe(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def close(self) -> None:
        self._unsubscribe()
        self._listeners.clear()
        logger.info("trip_subscription_closed")
