"""
Trip Creation Workflow.

State machine:

  Draft -> Validating -> Creating -> UploadingAsset -> Published
             |              |              |
             v              v              v
           Draft          Draft        RolledBack

Creation is two-phase:
  1. commit the trip document (empty image, empty participants, upcoming)
  2. upload the cover keyed by the new trip id, then patch ``image`` with
     the download URL

If phase 2 fails, the document and any partially uploaded asset are removed
as compensation. Compensation is best-effort: its own failures are logged
and reported to Sentry, never re-raised. The caller always sees a single
PartialCommitFailure, so an orphaned document with an empty image is never
reported as published.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable

import sentry_sdk

from services.cleanup.stores.base import BlobStore, DocumentStore
from services.cleanup.trips.errors import (
    PartialCommitFailure,
    RemoteUnavailable,
    ValidationFailure,
)
from services.cleanup.trips.models import SERVER_TIMESTAMP, Trip, TripStatus, merge_delta

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "jpg"
DEFAULT_CONTENT_TYPE = "image/jpeg"

PUBLISH_FAILED_MESSAGE = (
    "We couldn't publish your trip right now. Please check your connection and try again."
)

_URI_EXTENSION = re.compile(r"\.([a-zA-Z0-9]+)(\?|$)")


class CreationState(str, Enum):
    DRAFT = "Draft"
    VALIDATING = "Validating"
    CREATING = "Creating"
    UPLOADING_ASSET = "UploadingAsset"
    PUBLISHED = "Published"
    ROLLED_BACK = "RolledBack"


@dataclass(frozen=True)
class CoverAsset:
    """A selected cover image: raw bytes plus whatever the picker declared."""
    content: bytes
    uri: str = ""
    file_name: str | None = None
    mime_type: str | None = None


@dataclass
class TripForm:
    title: str = ""
    location: str = ""
    organizer: str = ""
    cleanup_goal: str = ""
    max_participants: str = ""
    date: datetime | None = None
    cover: CoverAsset | None = None


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

FIELD_MESSAGES: dict[str, str] = {
    "title": "Please add a descriptive trip title.",
    "location": "Let volunteers know where to meet.",
    "maxParticipants": "Tell us how many paddlers you can host.",
    "maxParticipantsInvalid": "Use a positive number for max participants.",
    "cleanupGoal": "Share a cleanup goal so people know the mission.",
    "organizer": "Add organizer contact details.",
    "date": "Pick a date that is today or later.",
    "image": "A cover photo helps volunteers spot your trip.",
    "imageTooLarge": "That cover photo is too large. Pick one under {limit_mb:.0f} MB.",
}


def parse_max_participants(raw: str) -> int | None:
    """Positive integer or None."""
    try:
        value = int(raw.strip())
    except (AttributeError, ValueError):
        return None
    return value if value > 0 else None


def validate_form(
    form: TripForm,
    today: date | None = None,
    max_cover_bytes: int | None = None,
) -> dict[str, str]:
    """
    Check every field and return {field: message} for each failure.

    All rules run; nothing short-circuits. Empty dict = valid.
    """
    errors: dict[str, str] = {}
    today = today or date.today()

    for key, value in (
        ("title", form.title),
        ("location", form.location),
        ("cleanupGoal", form.cleanup_goal),
        ("organizer", form.organizer),
    ):
        if not (value or "").strip():
            errors[key] = FIELD_MESSAGES[key]

    if not (form.max_participants or "").strip():
        errors["maxParticipants"] = FIELD_MESSAGES["maxParticipants"]
    elif parse_max_participants(form.max_participants) is None:
        errors["maxParticipants"] = FIELD_MESSAGES["maxParticipantsInvalid"]

    # date-only comparison; time of day is ignored
    if form.date is None or form.date.date() < today:
        errors["date"] = FIELD_MESSAGES["date"]

    if form.cover is None or not form.cover.content:
        errors["image"] = FIELD_MESSAGES["image"]
    elif max_cover_bytes is not None and len(form.cover.content) > max_cover_bytes:
        errors["image"] = FIELD_MESSAGES["imageTooLarge"].format(
            limit_mb=max_cover_bytes / (1024 * 1024)
        )

    return errors


def infer_asset_metadata(asset: CoverAsset | None) -> tuple[str, str]:
    """
    Return (extension, content_type) for a cover asset.

    Extension priority: file name extension, MIME subtype, extension in the
    asset's URI, else jpg. "jpeg" is normalized to "jpg". The content type is
    the declared MIME type when present, otherwise derived from the extension.
    """
    if asset is None:
        return DEFAULT_EXTENSION, DEFAULT_CONTENT_TYPE

    candidates: list[str | None] = []
    if asset.file_name and "." in asset.file_name:
        candidates.append(asset.file_name.rsplit(".", 1)[1])
    if asset.mime_type:
        candidates.append(asset.mime_type.split("/")[-1])
    if asset.uri:
        match = _URI_EXTENSION.search(asset.uri)
        candidates.append(match.group(1) if match else None)

    extension = next((c for c in candidates if c), DEFAULT_EXTENSION).lower()
    if extension == "jpeg":
        extension = "jpg"

    if asset.mime_type:
        content_type = asset.mime_type
    elif extension == "png":
        content_type = "image/png"
    else:
        content_type = DEFAULT_CONTENT_TYPE
    return extension, content_type


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------

class TripCreationWorkflow:
    """
    One trip submission.

    Usage:
        workflow = TripCreationWorkflow(store, blobs)
        try:
            trip = await workflow.submit(form)
        except ValidationFailure as exc:
            show(exc.errors)
        except (RemoteUnavailable, PartialCommitFailure) as exc:
            show(exc.message)
    """

    def __init__(
        self,
        store: DocumentStore,
        blobs: BlobStore,
        images_prefix: str = "tripImages",
        max_cover_bytes: int | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._store = store
        self._blobs = blobs
        self._images_prefix = images_prefix
        self._max_cover_bytes = max_cover_bytes
        self._today = today
        self._state = CreationState.DRAFT
        self.transitions: list[CreationState] = [CreationState.DRAFT]

    @property
    def state(self) -> CreationState:
        return self._state

    def _enter(self, state: CreationState) -> None:
        self._state = state
        self.transitions.append(state)

    async def submit(self, form: TripForm) -> Trip:
        if self._state not in (CreationState.DRAFT, CreationState.ROLLED_BACK):
            raise RuntimeError(f"Cannot submit from state {self._state.value}")

        self._enter(CreationState.VALIDATING)
        errors = validate_form(form, self._today(), self._max_cover_bytes)
        if errors:
            self._enter(CreationState.DRAFT)
            raise ValidationFailure(errors)

        # -- phase 1: the document ------------------------------------------
        self._enter(CreationState.CREATING)
        trip_id = self._store.new_document_id()
        document = self._base_document(form)
        try:
            await self._store.set_document(trip_id, document)
        except RemoteUnavailable:
            self._enter(CreationState.DRAFT)
            raise

        # -- phase 2: the cover asset ---------------------------------------
        self._enter(CreationState.UPLOADING_ASSET)
        extension, content_type = infer_asset_metadata(form.cover)
        key = f"{self._images_prefix}/{trip_id}.{extension}"
        asset_id: str | None = None
        try:
            asset_id = await self._blobs.upload(key, form.cover.content, content_type)
            url = await self._blobs.get_download_url(asset_id)
            await self._store.update_document(
                trip_id, {"image": url, "updatedAt": SERVER_TIMESTAMP}
            )
        except Exception as exc:
            logger.warning("trip_publish_failed trip=%s error=%s", trip_id, exc)
            await self._roll_back(trip_id, asset_id or key)
            self._enter(CreationState.ROLLED_BACK)
            raise PartialCommitFailure(PUBLISH_FAILED_MESSAGE, trip_id) from exc

        self._enter(CreationState.PUBLISHED)
        logger.info("trip_published trip=%s title=%r", trip_id, document["title"])
        published = merge_delta(
            document,
            {"image": url, "createdAt": SERVER_TIMESTAMP, "updatedAt": SERVER_TIMESTAMP},
        )
        return Trip.from_document(trip_id, published)

    def _base_document(self, form: TripForm) -> dict[str, Any]:
        return {
            "title": form.title.strip(),
            "date": form.date,
            "location": form.location.strip(),
            "maxParticipants": parse_max_participants(form.max_participants),
            "cleanupGoal": form.cleanup_goal.strip(),
            "organizer": form.organizer.strip(),
            "image": "",
            "status": TripStatus.UPCOMING.value,
            "participants": [],
            "createdAt": SERVER_TIMESTAMP,
            "updatedAt": SERVER_TIMESTAMP,
        }

    async def _roll_back(self, trip_id: str, asset_id: str) -> None:
        try:
            await self._store.delete_document(trip_id)
        except Exception as exc:
            logger.warning("trip_rollback_delete_failed trip=%s error=%s", trip_id, exc)
            sentry_sdk.capture_exception(exc)
        try:
            await self._blobs.delete(asset_id)
        except Exception as exc:
            logger.warning("trip_rollback_asset_failed trip=%s asset=%s error=%s", trip_id, asset_id, exc)
            sentry_sdk.capture_exception(exc)
        logger.info("trip_rolled_back trip=%s", trip_id)
