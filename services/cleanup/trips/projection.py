"""
Query/Filter Projection over the materialized trip view.

  status filter   "all" passes everything, otherwise compares the trip's
                  normalized status (lower-cased, default upcoming)
  text query      case-insensitive substring of title OR location;
                  empty query passes everything

Projections are lazy and restartable: iterating a TripProjection twice walks
the same immutable view snapshot twice, in the view's date-ascending order.

Typed queries are debounced: each keystroke cancels the pending timer and
schedules a new one; only the last timer fires, after ``window_s`` of quiet.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Iterator, Sequence

from services.cleanup.trips.models import Trip
from services.cleanup.trips.sync import TripSync, ViewState

logger = logging.getLogger(__name__)

DEBOUNCE_WINDOW_S = 0.25


class StatusFilter(str, Enum):
    UPCOMING = "upcoming"
    COMPLETED = "completed"
    ALL = "all"


def normalize_query(text: str | None) -> str:
    return (text or "").strip().lower()


class TripProjection:
    """Lazy, restartable filtered sequence of trips."""

    def __init__(
        self,
        trips: Sequence[Trip],
        status_filter: StatusFilter | str = StatusFilter.UPCOMING,
        query: str = "",
    ) -> None:
        self._trips = tuple(trips)
        self._filter = StatusFilter(status_filter)
        self._query = normalize_query(query)

    @property
    def status_filter(self) -> StatusFilter:
        return self._filter

    @property
    def query(self) -> str:
        return self._query

    def matches(self, trip: Trip) -> bool:
        if self._filter is not StatusFilter.ALL and trip.status.value != self._filter.value:
            return False
        if self._query:
            return self._query in trip.title.lower() or self._query in trip.location.lower()
        return True

    def __iter__(self) -> Iterator[Trip]:
        for trip in self._trips:
            if self.matches(trip):
                yield trip


def project(
    trips: Sequence[Trip],
    status_filter: StatusFilter | str = StatusFilter.UPCOMING,
    query: str = "",
) -> TripProjection:
    return TripProjection(trips, status_filter, query)


# ---------------------------------------------------------------------------
# Debounce
# ---------------------------------------------------------------------------

class QueryDebouncer:
    """
    Cancellable delayed task for search input.

    push() must be called from inside a running event loop.
    """

    def __init__(self, on_settled: Callable[[str], None], window_s: float = DEBOUNCE_WINDOW_S) -> None:
        self._on_settled = on_settled
        self._window_s = window_s
        self._pending: asyncio.Task | None = None
        self._value = ""

    @property
    def value(self) -> str:
        """Last settled (normalized) query."""
        return self._value

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def push(self, text: str) -> None:
        self.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._settle_later(text))

    async def _settle_later(self, text: str) -> None:
        await asyncio.sleep(self._window_s)
        self._pending = None
        self._value = normalize_query(text)
        self._on_settled(self._value)

    def cancel(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None


# ---------------------------------------------------------------------------
# Browser: filter + debounced query over a live TripSync
# ---------------------------------------------------------------------------

class TripBrowser:
    """
    Consumer-side list state: status filter, debounced query, live view.

    on_change is invoked with the current projection whenever the view is
    replaced, the filter changes, or a typed query settles.
    """

    def __init__(
        self,
        sync: TripSync,
        status_filter: StatusFilter | str = StatusFilter.UPCOMING,
        debounce_s: float = DEBOUNCE_WINDOW_S,
        on_change: Callable[[TripProjection], None] | None = None,
    ) -> None:
        self._sync = sync
        self._filter = StatusFilter(status_filter)
        self._query = ""
        self._on_change = on_change
        self._debouncer = QueryDebouncer(self._apply_query, debounce_s)
        self._detach = sync.add_listener(self._on_view)

    @property
    def status_filter(self) -> StatusFilter:
        return self._filter

    @property
    def query(self) -> str:
        """The query currently applied (not the one still being typed)."""
        return self._query

    @property
    def state(self) -> ViewState:
        return self._sync.state

    def visible(self) -> TripProjection:
        return project(self._sync.trips, self._filter, self._query)

    def set_filter(self, status_filter: StatusFilter | str) -> None:
        self._filter = StatusFilter(status_filter)
        self._emit()

    def type_query(self, text: str) -> None:
        self._debouncer.push(text)

    def _apply_query(self, query: str) -> None:
        self._query = query
        logger.debug("trip_query_settled query=%r", query)
        self._emit()

    def _on_view(self, state: ViewState) -> None:
        self._emit()

    def _emit(self) -> None:
        if self._on_change is not None:
            self._on_change(self.visible())

    def close(self) -> None:
        self._debouncer.cancel()
        self._detach()
