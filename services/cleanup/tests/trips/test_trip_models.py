"""
Trip record normalization and delta markers.

Validates:
- placeholders for blank text fields, unknown status -> upcoming
- unparseable dates read as unknown; ISO strings and calendar dates are parsed
- capacity parsing (absent / zero / junk -> unlimited) and derived fields
- participants deduplicated on read
- merge_delta semantics for ArrayUnion / ArrayRemove / SERVER_TIMESTAMP (clock read lazily)
- camelCase document round trip without the id
"""

from datetime import date, datetime, timezone
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from services.cleanup.tests.helpers.factories import make_trip
from services.cleanup.trips.models import (
    DEFAULT_CLEANUP_GOAL,
    DEFAULT_LOCATION,
    DEFAULT_ORGANIZER,
    DEFAULT_TITLE,
    SERVER_TIMESTAMP,
    ArrayRemove,
    ArrayUnion,
    Trip,
    TripStatus,
    apply_delta,
    merge_delta,
)

NOW = datetime(2030, 1, 2, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

class TestTripNormalization:
    def test_empty_document_gets_placeholders(self):
        trip = Trip.from_document("t1", {})
        assert trip.title == DEFAULT_TITLE
        assert trip.location == DEFAULT_LOCATION
        assert trip.organizer == DEFAULT_ORGANIZER
        assert trip.cleanup_goal == DEFAULT_CLEANUP_GOAL
        assert trip.date is None
        assert trip.status is TripStatus.UPCOMING
        assert trip.participants == ()
        assert trip.image == ""

    def test_none_document_reads_like_empty(self):
        assert Trip.from_document("t1", None).title == DEFAULT_TITLE

    def test_whitespace_title_uses_placeholder(self):
        assert make_trip(title="   ").title == DEFAULT_TITLE

    @pytest.mark.parametrize("raw", ["COMPLETED", " Completed ", "completed"])
    def test_status_is_case_insensitive(self, raw):
        assert make_trip(status=raw).status is TripStatus.COMPLETED

    @pytest.mark.parametrize("raw", [None, "", "archived", 3])
    def test_unknown_status_reads_as_upcoming(self, raw):
        assert make_trip(status=raw).status is TripStatus.UPCOMING

    @pytest.mark.parametrize("raw", ["Saturday morning", "", "  ", 1234, ["2030-07-01"]])
    def test_unparseable_date_is_unknown(self, raw):
        assert make_trip(date=raw).date is None

    def test_iso_string_date_is_parsed(self):
        trip = make_trip(date="2030-07-01T09:00:00+00:00")
        assert trip.date == datetime(2030, 7, 1, 9, 0, tzinfo=timezone.utc)

    def test_calendar_date_becomes_midnight(self):
        assert make_trip(date=date(2030, 7, 1)).date == datetime(2030, 7, 1)

    @pytest.mark.parametrize("raw", [None, 0, -4, "lots", True])
    def test_junk_capacity_means_unlimited(self, raw):
        trip = make_trip(maxParticipants=raw)
        assert trip.max_participants == 0
        assert trip.has_capacity_limit is False
        assert trip.available_slots is None
        assert trip.is_full is False

    def test_numeric_string_capacity_is_accepted(self):
        assert make_trip(maxParticipants="8").max_participants == 8

    def test_duplicate_participants_collapse(self):
        trip = make_trip(participants=["u1", "u2", "u1", "", None])
        assert trip.participants == ("u1", "u2")
        assert trip.participant_count == 2

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            Trip.from_document("", {})

    def test_trip_is_immutable(self):
        trip = make_trip()
        with pytest.raises(ValidationError):
            trip.title = "changed"


# ---------------------------------------------------------------------------
# Derived capacity fields
# ---------------------------------------------------------------------------

class TestCapacityFields:
    def test_available_slots(self):
        trip = make_trip(maxParticipants=5, participants=["a", "b"])
        assert trip.available_slots == 3
        assert trip.is_full is False

    def test_full_trip(self):
        trip = make_trip(maxParticipants=2, participants=["a", "b"])
        assert trip.available_slots == 0
        assert trip.is_full is True

    def test_over_capacity_clamps_at_zero(self):
        trip = make_trip(maxParticipants=1, participants=["a", "b", "c"])
        assert trip.available_slots == 0
        assert trip.is_full is True

    def test_has_participant_requires_actor(self):
        trip = make_trip(participants=["a"])
        assert trip.has_participant("a") is True
        assert trip.has_participant(None) is False
        assert trip.has_participant("") is False


# ---------------------------------------------------------------------------
# Delta markers
# ---------------------------------------------------------------------------

class TestMergeDelta:
    def test_array_union_skips_existing(self):
        merged = merge_delta({"participants": ["a"]}, {"participants": ArrayUnion(("a", "b"))})
        assert merged["participants"] == ["a", "b"]

    def test_array_union_on_missing_field(self):
        merged = merge_delta({}, {"participants": ArrayUnion(("a",))})
        assert merged["participants"] == ["a"]

    def test_array_remove_drops_every_occurrence(self):
        merged = merge_delta({"participants": ["a", "b", "a"]}, {"participants": ArrayRemove(("a",))})
        assert merged["participants"] == ["b"]

    def test_array_remove_absent_value_is_noop(self):
        merged = merge_delta({"participants": ["a"]}, {"participants": ArrayRemove(("z",))})
        assert merged["participants"] == ["a"]

    def test_server_timestamp_resolves_to_now(self):
        merged = merge_delta({}, {"updatedAt": SERVER_TIMESTAMP}, now=NOW)
        assert merged["updatedAt"] == NOW

    def test_clock_read_only_for_server_timestamp(self):
        with patch("services.cleanup.trips.models.datetime") as clock:
            merge_delta({"status": "upcoming"}, {"status": "completed"})
        clock.now.assert_not_called()

    def test_server_timestamp_without_now_uses_clock(self):
        merged = merge_delta({}, {"updatedAt": SERVER_TIMESTAMP})
        assert merged["updatedAt"].tzinfo is timezone.utc

    def test_source_document_untouched(self):
        doc = {"participants": ["a"]}
        merge_delta(doc, {"participants": ArrayUnion(("b",))})
        assert doc == {"participants": ["a"]}

    def test_concurrent_unions_both_land(self):
        doc = {"participants": []}
        doc = merge_delta(doc, {"participants": ArrayUnion(("x",))})
        doc = merge_delta(doc, {"participants": ArrayUnion(("y",))})
        assert sorted(doc["participants"]) == ["x", "y"]

    def test_server_timestamp_is_singleton(self):
        assert type(SERVER_TIMESTAMP)() is SERVER_TIMESTAMP


class TestDocumentRoundTrip:
    def test_to_document_uses_camel_case(self):
        doc = make_trip(participants=["u1"]).to_document()
        assert "id" not in doc
        assert doc["cleanupGoal"] == "Collect 20 bags of plastic."
        assert doc["maxParticipants"] == 10
        assert doc["participants"] == ["u1"]
        assert doc["status"] == "upcoming"

    def test_apply_delta_returns_new_trip(self):
        trip = make_trip(participants=[])
        joined = apply_delta(trip, {"participants": ArrayUnion(("u9",))}, now=NOW)
        assert joined.participants == ("u9",)
        assert trip.participants == ()
        assert joined.id == trip.id
