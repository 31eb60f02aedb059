from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest
import requests
from fastapi import FastAPI
from fastapi.testclient import TestClient

from venuebook.client.api_client import BookingApiClient
from venuebook.controllers.booking_controller import router as booking_router
from venuebook.controllers.catalog_controller import router as catalog_router
from venuebook.domain.errors import AuthError, ServerError, TransportError
from venuebook.domain.models import MISSING_VENUE, BookingStatus, YearMonth
from venuebook.engine.approval import ApprovalStateMachine
from venuebook.engine.schedule_window import ScheduleWindow, WindowState
from venuebook.repository.data_repository import DataRepository
from venuebook.services.auth_service import AuthService
from venuebook.services.booking_service import BookingWorkflowService
from venuebook.utils.config import get_settings


IST = ZoneInfo("Asia/Kolkata")
ADMIN_TOKEN = "client-admin-token"


def _build_test_settings(tmp_path, filename: str):
    get_settings.cache_clear()
    return replace(
        get_settings(),
        database_path=tmp_path / filename,
        admin_token=ADMIN_TOKEN,
        local_timezone="Asia/Kolkata",
    )


def _build_client(tmp_path) -> tuple[BookingApiClient, DataRepository, dict[str, int]]:
    settings = _build_test_settings(tmp_path, "client.db")
    repository = DataRepository(settings)
    repository.initialize_database()

    apj = repository.create_venue("APJ Abdul Kalam Auditorium", 600, "Main Block")
    peb = repository.create_venue("PEB Hall", 250, "PEB Building")
    dept = repository.create_department("Mechanical Engineering", "ME")
    user = repository.create_user("meera.k", "meera.k@campus.example")
    ids = {"apj": apj, "peb": peb}
    ids["approved"] = repository.create_booking(
        event_name="Robotics Expo",
        start_time=datetime(2024, 3, 10, 9, tzinfo=IST),
        end_time=datetime(2024, 3, 12, 0, tzinfo=IST),
        venue_id=apj,
        department_id=dept,
        user_id=user,
        status=BookingStatus.APPROVED,
        poster_images=["posters/expo-1.png", "posters/expo-2.png"],
    )
    ids["overlapping"] = repository.create_booking(
        event_name="Dance Practice",
        start_time=datetime(2024, 3, 11, 16, tzinfo=IST),
        end_time=datetime(2024, 3, 11, 18, tzinfo=IST),
        venue_id=apj,
        department_id=dept,
        user_id=user,
    )
    ids["peb_pending"] = repository.create_booking(
        event_name="Alumni Meet",
        start_time=datetime(2024, 3, 15, 10, tzinfo=IST),
        end_time=datetime(2024, 3, 15, 13, tzinfo=IST),
        venue_id=peb,
        department_id=dept,
        user_id=user,
    )

    app = FastAPI()
    app.include_router(catalog_router)
    app.include_router(booking_router)
    app.state.repository = repository
    app.state.auth_service = AuthService(settings=settings)
    app.state.booking_service = BookingWorkflowService(repository=repository, settings=settings)

    client = BookingApiClient(base_url="", session=TestClient(app), settings=settings)
    return client, repository, ids


class RecordingSession:
    def __init__(self, response=None, error=None) -> None:
        self.response = response
        self.error = error
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


class HtmlResponse:
    status_code = 200

    def json(self):
        raise ValueError("not json")


def test_missing_token_fails_before_any_request():
    session = RecordingSession()
    client = BookingApiClient(base_url="http://example.invalid", session=session)

    with pytest.raises(AuthError):
        client.list_all_bookings()
    with pytest.raises(AuthError):
        client.reject_booking("1", "reason")
    assert session.calls == []


def test_network_failure_and_non_json_map_to_transport_error():
    offline = BookingApiClient(
        base_url="http://example.invalid",
        token="t",
        session=RecordingSession(error=requests.ConnectionError("refused")),
    )
    with pytest.raises(TransportError):
        offline.get_schedule("1", 2024, 3)

    html = BookingApiClient(
        base_url="http://example.invalid",
        token="t",
        session=RecordingSession(response=HtmlResponse()),
    )
    with pytest.raises(TransportError):
        html.list_venues()


def test_login_and_schedule_round_trip(tmp_path):
    client, _, ids = _build_client(tmp_path)

    with pytest.raises(AuthError):
        client.login("wrong")
    client.login(ADMIN_TOKEN)

    schedule = client.get_schedule(str(ids["apj"]), 2024, 3)
    assert [b.id for b in schedule] == [str(ids["approved"])]
    expo = schedule[0]
    assert expo.venue.name == "APJ Abdul Kalam Auditorium"
    assert expo.poster_preview == "posters/expo-1.png"
    assert expo.requester.display_name == "meera.k"

    with pytest.raises(ServerError) as excinfo:
        client.get_schedule(str(ids["apj"]), 2024, 13)
    assert excinfo.value.status_code == 400


def test_rejected_session_maps_to_auth_error(tmp_path):
    client, _, _ = _build_client(tmp_path)
    client.set_token("stale-session")

    with pytest.raises(AuthError):
        client.get_booking_stats()


def test_approval_machine_against_service(tmp_path):
    client, repository, ids = _build_client(tmp_path)
    client.login(ADMIN_TOKEN)
    machine = ApprovalStateMachine(client, settings=_build_test_settings(tmp_path, "client.db"))

    asyncio.run(machine.refresh())
    assert len(machine.bookings) == 3

    conflict = asyncio.run(machine.approve(str(ids["overlapping"])))
    assert isinstance(conflict.error, ServerError)
    assert machine.notices.error == "Conflict with: 'Robotics Expo'."
    assert machine.get(str(ids["overlapping"])).status is BookingStatus.PENDING

    rejected = asyncio.run(machine.reject(str(ids["overlapping"]), "  Overlaps the expo "))
    assert rejected.ok
    assert rejected.booking.rejection_reason == "Overlaps the expo"
    assert machine.notices.success == "Booking rejected."

    repository.delete_venue(ids["peb"])
    asyncio.run(machine.refresh())
    orphan = machine.get(str(ids["peb_pending"]))
    assert orphan.venue is MISSING_VENUE

    approved = asyncio.run(machine.approve(str(ids["peb_pending"])))
    assert approved.ok
    assert approved.booking.venue is MISSING_VENUE
    assert client.get_booking_stats() == {"total": 3, "pending": 0, "approved": 2, "rejected": 1}


def test_schedule_window_against_service(tmp_path):
    client, _, ids = _build_client(tmp_path)
    client.login(ADMIN_TOKEN)
    window = ScheduleWindow(client, venue_id=str(ids["apj"]), month=YearMonth(2024, 3), tz=IST)

    asyncio.run(window.get_bookings())

    assert window.state is WindowState.READY
    assert window.day_info(datetime(2024, 3, 11).date()).is_range_end

    window.set_venue("999")
    asyncio.run(window.get_bookings())
    assert window.state is WindowState.ERROR
    assert window.error_message == "Venue not found"


def test_overview_lists_round_trip(tmp_path):
    client, repository, ids = _build_client(tmp_path)
    client.login(ADMIN_TOKEN)
    soon = datetime.now(IST) + timedelta(days=1)
    expo = repository.get_booking(ids["approved"])
    upcoming_id = repository.create_booking(
        event_name="Project Demo Day",
        start_time=soon,
        end_time=soon + timedelta(hours=3),
        venue_id=ids["peb"],
        department_id=expo.department.department_id,
        user_id=expo.requester.user_id,
        status=BookingStatus.APPROVED,
    )

    upcoming = client.list_upcoming_bookings(days=3)
    assert [b.id for b in upcoming] == [str(upcoming_id)]
    assert upcoming[0].venue.name == "PEB Hall"

    recent = client.list_recent_pending(limit=1)
    assert [b.display_name for b in recent] == ["Alumni Meet"]
    assert client.get_booking_stats()["pending"] == 2
