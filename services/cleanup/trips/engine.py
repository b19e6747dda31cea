"""
Capacity & Membership Engine.

Pure decision logic for the three trip actions, evaluated against the
locally known trip state and an explicit actor id:

  join      actor not yet a participant AND (unlimited OR seats left)
            -> participants: ArrayUnion(actor)
  cancel    actor is a participant
            -> participants: ArrayRemove(actor)
  complete  trip not completed AND actor is a participant
            -> status: completed, completionNote: COMPLETION_NOTE

A missing actor (signed out) is checked first for every action and denied
with NotAuthenticated plus a login call-to-action.

Known limitation: capacity is checked against the local view, so two actors
racing for the last seat can both be admitted. Over-capacity trips simply
read as full (availableSlots clamps at 0); nothing here corrects them.

Determinism guarantee:
  No I/O, no clock, no randomness. Same (trip, actor, action) -> same Decision.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from services.cleanup.trips.errors import PreconditionDenied
from services.cleanup.trips.models import (
    ArrayRemove,
    ArrayUnion,
    Trip,
    TripStatus,
    apply_delta,
)

COMPLETION_NOTE = "Thank you for helping clean the ocean!"

LOGIN_CALL_TO_ACTION = "login"


class TripAction(str, Enum):
    JOIN = "join"
    CANCEL = "cancel"
    COMPLETE = "complete"


class DenialReason(str, Enum):
    NOT_AUTHENTICATED = "NotAuthenticated"
    ALREADY_JOINED = "AlreadyJoined"
    TRIP_FULL = "TripFull"
    NOT_A_JOINER = "NotAJoiner"
    ALREADY_COMPLETED = "AlreadyCompleted"
    NOT_A_PARTICIPANT = "NotAParticipant"


DENIAL_MESSAGES: dict[DenialReason, str] = {
    DenialReason.NOT_AUTHENTICATED: "Log in or create an account to join, manage, or complete this trip.",
    DenialReason.ALREADY_JOINED: "You are already on the list for this trip.",
    DenialReason.TRIP_FULL: "All available spots are taken.",
    DenialReason.NOT_A_JOINER: "You are not currently signed up for this trip.",
    DenialReason.ALREADY_COMPLETED: "This trip is already marked as complete.",
    DenialReason.NOT_A_PARTICIPANT: "Only participants can mark the trip as completed.",
}

SUCCESS_MESSAGES: dict[TripAction, str] = {
    TripAction.JOIN: "You are in! See you on the water.",
    TripAction.CANCEL: "You have been removed from the attendee list.",
    TripAction.COMPLETE: "Trip marked as completed.",
}


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Decision:
    """Outcome of evaluating one action against one trip."""
    action: TripAction
    allow: bool
    reason: DenialReason | None
    message: str
    delta: dict[str, Any] = field(default_factory=dict)
    """Field delta to send to the store. Empty when denied."""

    result: Trip | None = None
    """Local preview of the trip after the delta. None when denied."""

    @property
    def call_to_action(self) -> str | None:
        if self.reason is DenialReason.NOT_AUTHENTICATED:
            return LOGIN_CALL_TO_ACTION
        return None

    def raise_for_denial(self) -> None:
        if not self.allow and self.reason is not None:
            raise PreconditionDenied(self.reason, self.message, self.call_to_action)


@dataclass(frozen=True)
class Capacity:
    has_limit: bool
    max_participants: int
    participant_count: int
    available_slots: int | None
    is_full: bool

    @property
    def label(self) -> str:
        if self.available_slots is None:
            return "Unlimited spots available"
        if self.available_slots == 0:
            return "Fully booked"
        suffix = "" if self.available_slots == 1 else "s"
        return f"{self.available_slots} spot{suffix} left"

    def to_dict(self) -> dict[str, Any]:
        return {
            "hasCapacityLimit": self.has_limit,
            "maxParticipants": self.max_participants,
            "participantCount": self.participant_count,
            "availableSlots": self.available_slots,
            "isFull": self.is_full,
            "label": self.label,
        }


def capacity_of(trip: Trip) -> Capacity:
    return Capacity(
        has_limit=trip.has_capacity_limit,
        max_participants=trip.max_participants,
        participant_count=trip.participant_count,
        available_slots=trip.available_slots,
        is_full=trip.is_full,
    )


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def _denied(action: TripAction, reason: DenialReason) -> Decision:
    return Decision(
        action=action,
        allow=False,
        reason=reason,
        message=DENIAL_MESSAGES[reason],
    )


def _allowed(action: TripAction, trip: Trip, delta: dict[str, Any]) -> Decision:
    return Decision(
        action=action,
        allow=True,
        reason=None,
        message=SUCCESS_MESSAGES[action],
        delta=delta,
        result=apply_delta(trip, delta),
    )


def _join(trip: Trip, actor_id: str) -> Decision:
    if trip.has_participant(actor_id):
        return _denied(TripAction.JOIN, DenialReason.ALREADY_JOINED)
    if trip.is_full:
        return _denied(TripAction.JOIN, DenialReason.TRIP_FULL)
    return _allowed(TripAction.JOIN, trip, {"participants": ArrayUnion((actor_id,))})


def _cancel(trip: Trip, actor_id: str) -> Decision:
    if not trip.has_participant(actor_id):
        return _denied(TripAction.CANCEL, DenialReason.NOT_A_JOINER)
    return _allowed(TripAction.CANCEL, trip, {"participants": ArrayRemove((actor_id,))})


def _complete(trip: Trip, actor_id: str) -> Decision:
    if trip.is_completed:
        return _denied(TripAction.COMPLETE, DenialReason.ALREADY_COMPLETED)
    if not trip.has_participant(actor_id):
        return _denied(TripAction.COMPLETE, DenialReason.NOT_A_PARTICIPANT)
    return _allowed(
        TripAction.COMPLETE,
        trip,
        {"status": TripStatus.COMPLETED.value, "completionNote": COMPLETION_NOTE},
    )


_RULES = {
    TripAction.JOIN: _join,
    TripAction.CANCEL: _cancel,
    TripAction.COMPLETE: _complete,
}


def decide(trip: Trip, actor_id: str | None, action: TripAction | str) -> Decision:
    """Evaluate ``action`` by ``actor_id`` against the current ``trip`` state."""
    action = TripAction(action)
    if not actor_id:
        return _denied(action, DenialReason.NOT_AUTHENTICATED)
    return _RULES[action](trip, actor_id)


def require(trip: Trip, actor_id: str | None, action: TripAction | str) -> Decision:
    """Like decide(), but raises PreconditionDenied instead of returning a denial."""
    decision = decide(trip, actor_id, action)
    decision.raise_for_denial()
    return decision
