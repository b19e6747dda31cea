"""
Trip participation and lifecycle core.

  models      TripRecord shape, delta markers
  engine      join / cancel / complete decisions, capacity
  sync        materialized view, subscription, read-your-writes mutations
  projection  status filter + debounced text query
  creation    validated two-phase creation with rollback
  service     facade used by the HTTP routers

Usage:
    from services.cleanup.trips import TripService, TripSync, decide
"""

from __future__ import annotations

from services.cleanup.trips.creation import CoverAsset, CreationState, TripCreationWorkflow, TripForm
from services.cleanup.trips.engine import Decision, DenialReason, TripAction, capacity_of, decide
from services.cleanup.trips.errors import (
    PartialCommitFailure,
    PreconditionDenied,
    RemoteUnavailable,
    TripError,
    TripNotFound,
    ValidationFailure,
)
from services.cleanup.trips.models import Trip, TripStatus
from services.cleanup.trips.projection import StatusFilter, TripBrowser, TripProjection, project
from services.cleanup.trips.service import ActionResult, TripService
from services.cleanup.trips.sync import TripSync, ViewState

__all__ = [
    "ActionResult",
    "CoverAsset",
    "CreationState",
    "Decision",
    "DenialReason",
    "PartialCommitFailure",
    "PreconditionDenied",
    "RemoteUnavailable",
    "StatusFilter",
    "Trip",
    "TripAction",
    "TripBrowser",
    "TripCreationWorkflow",
    "TripError",
    "TripForm",
    "TripNotFound",
    "TripProjection",
    "TripService",
    "TripStatus",
    "TripSync",
    "ValidationFailure",
    "ViewState",
    "capacity_of",
    "decide",
    "project",
]
