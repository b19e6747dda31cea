"""
TripRecord: canonical shape of a cleanup trip document.

One remote document per trip, stored with camelCase keys:

  title, location, organizer, cleanupGoal   free text, placeholder when absent
  date                                       point in time, may be absent
  maxParticipants                            0 / absent = unlimited capacity
  participants                               user ids, no duplicates
  status                                     "upcoming" | "completed"
  completionNote                             set on transition to completed
  image                                      cover URL, "" until upload completes
  createdAt, updatedAt                       server-assigned

Documents written by older clients are not trusted: every field is
normalized on read (unknown status -> upcoming, junk capacity -> unlimited,
unparseable date -> unknown, duplicate participants collapsed).

Field deltas use set-add / set-remove markers (ArrayUnion / ArrayRemove)
for the participants list so concurrent joins merge at the store instead of
overwriting each other. merge_delta() is the local reading of those markers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_TITLE = "Paddle cleanup"
DEFAULT_LOCATION = "To be announced"
DEFAULT_ORGANIZER = "Unknown"
DEFAULT_CLEANUP_GOAL = "The organizer will share the goal on site."

_PLACEHOLDERS: dict[str, str] = {
    "title": DEFAULT_TITLE,
    "location": DEFAULT_LOCATION,
    "organizer": DEFAULT_ORGANIZER,
    "cleanup_goal": DEFAULT_CLEANUP_GOAL,
}


class TripStatus(str, Enum):
    UPCOMING = "upcoming"
    COMPLETED = "completed"

    @classmethod
    def normalize(cls, value: Any) -> "TripStatus":
        """Lower-case match; absent or unrecognized values read as upcoming."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.UPCOMING


# ---------------------------------------------------------------------------
# Delta markers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ArrayUnion:
    """Add each value to a list field unless already present."""
    values: tuple[str, ...]


@dataclass(frozen=True)
class ArrayRemove:
    """Remove every occurrence of each value from a list field."""
    values: tuple[str, ...]


class _ServerTimestamp:
    _instance: "_ServerTimestamp | None" = None

    def __new__(cls) -> "_ServerTimestamp":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


def merge_delta(
    document: dict[str, Any],
    delta: dict[str, Any],
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Return a copy of ``document`` with ``delta`` applied.

    Plain values overwrite the field. ArrayUnion / ArrayRemove operate
    element-wise on list fields. SERVER_TIMESTAMP resolves to ``now``; the
    clock is read only when the delta carries one.
    """
    merged = dict(document)
    for key, value in delta.items():
        if isinstance(value, ArrayUnion):
            current = list(merged.get(key) or [])
            for item in value.values:
                if item not in current:
                    current.append(item)
            merged[key] = current
        elif isinstance(value, ArrayRemove):
            current = list(merged.get(key) or [])
            merged[key] = [item for item in current if item not in value.values]
        elif value is SERVER_TIMESTAMP:
            if now is None:
                now = datetime.now(timezone.utc)
            merged[key] = now
        else:
            merged[key] = value
    return merged


# ---------------------------------------------------------------------------
# Trip
# ---------------------------------------------------------------------------

class Trip(BaseModel):
    """Normalized, immutable view of one trip document."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str
    title: str = DEFAULT_TITLE
    location: str = DEFAULT_LOCATION
    organizer: str = DEFAULT_ORGANIZER
    cleanup_goal: str = DEFAULT_CLEANUP_GOAL
    date: datetime | None = None
    max_participants: int = 0
    participants: tuple[str, ...] = ()
    status: TripStatus = TripStatus.UPCOMING
    completion_note: str = ""
    image: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not v:
            raise ValueError("Trip id must not be empty")
        return v

    @field_validator("title", "location", "organizer", "cleanup_goal", mode="before")
    @classmethod
    def placeholder_text(cls, v: Any, info) -> str:
        if isinstance(v, str) and v.strip():
            return v
        return _PLACEHOLDERS[info.field_name]

    @field_validator("completion_note", "image", mode="before")
    @classmethod
    def empty_text(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @field_validator("date", "created_at", "updated_at", mode="before")
    @classmethod
    def optional_datetime(cls, v: Any) -> datetime | None:
        """Timestamps pass through, ISO strings are parsed, anything else is unknown."""
        if isinstance(v, datetime):
            return v
        if isinstance(v, date):
            return datetime(v.year, v.month, v.day)
        if isinstance(v, str) and v.strip():
            try:
                return datetime.fromisoformat(v.strip())
            except ValueError:
                return None
        return None

    @field_validator("max_participants", mode="before")
    @classmethod
    def capacity(cls, v: Any) -> int:
        if isinstance(v, bool):
            return 0
        try:
            parsed = int(v)
        except (TypeError, ValueError):
            return 0
        return max(parsed, 0)

    @field_validator("participants", mode="before")
    @classmethod
    def unique_participants(cls, v: Any) -> tuple[str, ...]:
        if not isinstance(v, (list, tuple)):
            return ()
        seen: list[str] = []
        for uid in v:
            if isinstance(uid, str) and uid and uid not in seen:
                seen.append(uid)
        return tuple(seen)

    @field_validator("status", mode="before")
    @classmethod
    def normalized_status(cls, v: Any) -> TripStatus:
        return TripStatus.normalize(v)

    # -- construction / serialization ---------------------------------------

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any] | None) -> "Trip":
        return cls.model_validate({**(data or {}), "id": doc_id})

    def to_document(self) -> dict[str, Any]:
        """camelCase field map without the id (the id is the document key)."""
        data = self.model_dump(by_alias=True, exclude={"id"})
        data["status"] = self.status.value
        data["participants"] = list(self.participants)
        return data

    # -- derived fields -----------------------------------------------------

    @property
    def has_capacity_limit(self) -> bool:
        return self.max_participants > 0

    @property
    def participant_count(self) -> int:
        return len(self.participants)

    @property
    def available_slots(self) -> int | None:
        """None when capacity is unlimited; clamps at 0 for over-full trips."""
        if not self.has_capacity_limit:
            return None
        return max(0, self.max_participants - self.participant_count)

    @property
    def is_full(self) -> bool:
        return self.available_slots == 0

    @property
    def is_completed(self) -> bool:
        return self.status is TripStatus.COMPLETED

    def has_participant(self, actor_id: str | None) -> bool:
        return bool(actor_id) and actor_id in self.participants


def apply_delta(trip: Trip, delta: dict[str, Any], now: datetime | None = None) -> Trip:
    """Apply a field delta to a trip the way the store would."""
    return Trip.from_document(trip.id, merge_delta(trip.to_document(), delta, now))
