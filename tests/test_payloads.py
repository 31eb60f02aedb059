"""Tests for wire decoding and ingestion-time placeholders."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest

from venuebook.client.payloads import BookingPayload, VenuePayload, decode, decode_list
from venuebook.domain.errors import DataQualityWarning, TransportError
from venuebook.domain.models import (
    MISSING_DEPARTMENT,
    MISSING_REJECTION_REASON,
    MISSING_REQUESTER,
    MISSING_VENUE,
    UNTITLED_EVENT,
    BookingStatus,
)


def _raw(**overrides) -> dict:
    raw = {
        "id": 12,
        "status": "pending",
        "event_name": "Tech Talk",
        "start_time": "2024-03-10T03:30:00Z",
        "end_time": "2024-03-10T06:30:00+00:00",
        "venue": {"id": 1, "name": "PEB Hall", "location": "PEB Building", "capacity": 250},
        "department": {"id": 3, "name": "Mechanical Engineering", "code": "ME"},
        "requester": {"id": 9, "username": "meera.k", "email": "meera.k@campus.example"},
        "poster_images": ["a.png", "b.png"],
    }
    raw.update(overrides)
    return raw


def test_full_record_converts_to_domain() -> None:
    booking = decode(BookingPayload, _raw()).to_domain()

    assert booking.id == "12"
    assert booking.start_time == datetime(2024, 3, 10, 3, 30, tzinfo=timezone.utc)
    assert booking.venue.id == "1"
    assert booking.department.code == "ME"
    assert booking.poster_preview == "a.png"
    assert booking.rejection_reason is None


def test_missing_relations_become_placeholders() -> None:
    booking = decode(
        BookingPayload,
        _raw(venue=None, department=None, requester=None, event_name=None),
    ).to_domain()

    assert booking.venue is MISSING_VENUE
    assert booking.department.name == "N/A (Missing)"
    assert booking.department is MISSING_DEPARTMENT
    assert booking.requester is MISSING_REQUESTER
    assert booking.display_name == UNTITLED_EVENT
    assert booking.venue.is_placeholder and booking.venue.id is None


def test_unparsable_timestamp_degrades_only_that_record() -> None:
    bookings = decode_list(
        BookingPayload,
        {"bookings": [_raw(start_time="not-a-date"), _raw(id=13)]},
        "bookings",
    )
    broken, intact = (item.to_domain() for item in bookings)

    assert broken.start_time is None
    with pytest.raises(DataQualityWarning):
        broken.span()
    assert intact.span()[0].year == 2024


def test_naive_timestamp_is_read_as_utc() -> None:
    booking = decode(BookingPayload, _raw(start_time="2024-03-10T03:30:00")).to_domain()
    assert booking.start_time == datetime(2024, 3, 10, 3, 30, tzinfo=timezone.utc)


def test_rejection_reason_only_kept_for_rejected(caplog) -> None:
    pending = decode(BookingPayload, _raw(rejection_reason="stale")).to_domain()
    assert pending.rejection_reason is None

    with caplog.at_level(logging.WARNING):
        rejected = decode(BookingPayload, _raw(status="rejected", rejection_reason=" ")).to_domain()
    assert rejected.rejection_reason == MISSING_REJECTION_REASON
    assert "without a reason" in caplog.text


@pytest.mark.parametrize(
    "body",
    [
        {"bookings": [{"status": "pending"}]},
        {"bookings": [_raw(status="archived")]},
        {"bookings": ["not an object"]},
        {"bookings": {"id": 1}},
        ["no", "envelope"],
    ],
)
def test_malformed_responses_raise_transport_error(body) -> None:
    with pytest.raises(TransportError):
        decode_list(BookingPayload, body, "bookings")


def test_merge_keeps_local_fields_the_server_omitted() -> None:
    local = decode(BookingPayload, _raw()).to_domain()
    update = decode(BookingPayload, {"id": 12, "status": "rejected", "rejection_reason": "Clash"})

    merged = update.merge_into(local)

    assert merged.status is BookingStatus.REJECTED
    assert merged.rejection_reason == "Clash"
    assert merged.venue == local.venue
    assert merged.event_name == "Tech Talk"
    assert merged.poster_images == ("a.png", "b.png")


def test_venue_label_includes_location() -> None:
    venue = decode(VenuePayload, {"id": "4", "name": "PEB Hall", "location": "PEB Building"}).to_domain()
    assert venue.label == "PEB Hall (PEB Building)"
