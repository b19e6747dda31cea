"""
Error taxonomy for the trip core.

  PreconditionDenied    business-rule refusal (full, already joined, ...)
  RemoteUnavailable     subscription / read / write / upload transport failure
  PartialCommitFailure  trip document created but cover upload or patch failed
  ValidationFailure     per-field creation form errors, collected not short-circuited
  TripNotFound          the target document no longer exists

Every error carries a user-facing ``message``; none of these are meant to be
rendered silently.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from services.cleanup.trips.engine import DenialReason


class TripError(Exception):
    code: str = "TRIP_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class PreconditionDenied(TripError):
    def __init__(
        self,
        reason: "DenialReason",
        message: str,
        call_to_action: str | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.code = reason.value
        self.call_to_action = call_to_action


class RemoteUnavailable(TripError):
    code = "RemoteUnavailable"
    retryable = True


class PartialCommitFailure(TripError):
    code = "PartialCommitFailure"

    def __init__(self, message: str, trip_id: str) -> None:
        super().__init__(message)
        self.trip_id = trip_id


class ValidationFailure(TripError):
    code = "ValidationFailure"

    def __init__(self, errors: dict[str, str], message: str = "Please fix the highlighted fields.") -> None:
        super().__init__(message)
        self.errors = dict(errors)


class TripNotFound(TripError):
    code = "TripNotFound"

    def __init__(self, trip_id: str) -> None:
        super().__init__("This trip is no longer available.")
        self.trip_id = trip_id
