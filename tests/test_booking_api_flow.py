from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from fastapi import FastAPI
from fastapi.testclient import TestClient

from venuebook.controllers.booking_controller import router as booking_router
from venuebook.controllers.catalog_controller import router as catalog_router
from venuebook.domain.models import BookingStatus
from venuebook.repository.data_repository import DataRepository
from venuebook.services.auth_service import AuthService
from venuebook.services.booking_service import BookingWorkflowService
from venuebook.utils.config import get_settings


IST = ZoneInfo("Asia/Kolkata")


def _build_test_settings(tmp_path, filename: str, admin_token):
    get_settings.cache_clear()
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        admin_token=admin_token,
        local_timezone="Asia/Kolkata",
    )


def _seed(repository: DataRepository) -> dict[str, int]:
    apj = repository.create_venue("APJ Abdul Kalam Auditorium", 600, "Main Block")
    ks = repository.create_venue("K S Auditorium", 350, "Library Block")
    cse = repository.create_department("Computer Science and Engineering", "cse")
    user = repository.create_user("asha.rao", "Asha.Rao@campus.example")

    def booking(name, venue, start, end, status=BookingStatus.PENDING, reason=None):
        return repository.create_booking(
            event_name=name,
            start_time=start,
            end_time=end,
            venue_id=venue,
            department_id=cse,
            user_id=user,
            status=status,
            rejection_reason=reason,
        )

    ids = {
        "apj": apj,
        "ks": ks,
        "tech_talk": booking(
            "Tech Talk", apj, datetime(2024, 3, 10, 9, tzinfo=IST), datetime(2024, 3, 12, 0, tzinfo=IST),
            BookingStatus.APPROVED,
        ),
        "hackathon": booking(
            "Hackathon", apj, datetime(2024, 3, 11, 10, tzinfo=IST), datetime(2024, 3, 11, 12, tzinfo=IST)
        ),
        "workshop": booking(
            "Workshop", apj, datetime(2024, 3, 20, 10, tzinfo=IST), datetime(2024, 3, 20, 12, tzinfo=IST)
        ),
        "lecture": booking(
            "Guest Lecture", apj, datetime(2024, 2, 29, 20, tzinfo=IST), datetime(2024, 3, 1, 1, tzinfo=IST),
            BookingStatus.APPROVED,
        ),
        "april": booking(
            "April Fest", apj, datetime(2024, 4, 1, 0, tzinfo=IST), datetime(2024, 4, 1, 5, tzinfo=IST),
            BookingStatus.APPROVED,
        ),
        "rejected": booking(
            "Old Request", ks, datetime(2024, 3, 5, 9, tzinfo=IST), datetime(2024, 3, 5, 10, tzinfo=IST),
            BookingStatus.REJECTED, "Venue closed",
        ),
        "ks_event": booking(
            "Quiz", ks, datetime(2024, 3, 10, 9, tzinfo=IST), datetime(2024, 3, 10, 11, tzinfo=IST),
            BookingStatus.APPROVED,
        ),
    }
    return ids


def _build_test_app(tmp_path, admin_token=None) -> tuple[FastAPI, DataRepository, dict[str, int]]:
    settings = _build_test_settings(tmp_path, "booking_flow.db", admin_token)
    repository = DataRepository(settings)
    repository.initialize_database()
    ids = _seed(repository)

    app = FastAPI()
    app.include_router(catalog_router)
    app.include_router(booking_router)
    app.state.repository = repository
    app.state.auth_service = AuthService(settings=settings)
    app.state.booking_service = BookingWorkflowService(repository=repository, settings=settings)
    return app, repository, ids


def test_admin_endpoints_require_login_when_token_configured(tmp_path):
    app, _, ids = _build_test_app(tmp_path, "secret-admin-token")
    client = TestClient(app)

    assert client.get("/api/bookings/admin/all").status_code == 401
    assert client.get("/api/venues").status_code == 200

    wrong = client.post("/api/auth/admin-login", json={"admin_token": "nope"})
    assert wrong.status_code == 401

    login = client.post("/api/auth/admin-login", json={"admin_token": "secret-admin-token"})
    assert login.status_code == 200
    assert login.json()["token_type"] == "bearer"
    headers = {"Authorization": f"Bearer {login.json()['access_token']}"}

    assert client.get("/api/bookings/admin/all", headers=headers).status_code == 200
    forged = {"Authorization": "Bearer forged"}
    assert client.put(f"/api/bookings/{ids['workshop']}/approve", headers=forged).status_code == 401


def test_catalog_lists_venues_and_departments(tmp_path):
    app, _, _ = _build_test_app(tmp_path)
    client = TestClient(app)

    venues = client.get("/api/venues").json()
    assert venues["count"] == 2
    assert [v["name"] for v in venues["venues"]] == ["APJ Abdul Kalam Auditorium", "K S Auditorium"]

    departments = client.get("/api/departments").json()
    assert departments["departments"][0]["code"] == "CSE"


def test_schedule_returns_approved_bookings_overlapping_local_month(tmp_path):
    app, _, ids = _build_test_app(tmp_path)
    client = TestClient(app)

    response = client.get(f"/api/bookings/schedule/{ids['apj']}", params={"year": 2024, "month": 3})

    assert response.status_code == 200
    payload = response.json()
    assert payload["count"] == 2
    assert [b["id"] for b in payload["bookings"]] == [ids["lecture"], ids["tech_talk"]]
    assert all(b["status"] == "approved" for b in payload["bookings"])
    assert payload["bookings"][1]["venue"]["name"] == "APJ Abdul Kalam Auditorium"


def test_schedule_validation_and_unknown_venue(tmp_path):
    app, _, ids = _build_test_app(tmp_path)
    client = TestClient(app)
    path = f"/api/bookings/schedule/{ids['apj']}"

    assert client.get(path, params={"year": 2024, "month": 13}).status_code == 400
    assert client.get(path, params={"year": 1969, "month": 1}).status_code == 400
    assert client.get(path, params={"year": "abc", "month": 1}).status_code == 400
    assert client.get(path).status_code == 400
    missing = client.get("/api/bookings/schedule/999", params={"year": 2024, "month": 3})
    assert missing.status_code == 404


def test_admin_listing_and_stats(tmp_path):
    app, _, ids = _build_test_app(tmp_path)
    client = TestClient(app)

    listing = client.get("/api/bookings/admin/all").json()
    returned = [b["id"] for b in listing["bookings"]]
    assert listing["count"] == 7
    assert returned == sorted(returned, reverse=True)

    pending = client.get("/api/bookings/admin/all", params={"status": "pending"}).json()
    assert {b["id"] for b in pending["bookings"]} == {ids["hackathon"], ids["workshop"]}
    assert client.get("/api/bookings/admin/all", params={"status": "maybe"}).status_code == 400

    stats = client.get("/api/bookings/admin/stats").json()
    assert stats == {"total": 7, "pending": 2, "approved": 4, "rejected": 1}


def test_approve_rules(tmp_path):
    app, _, ids = _build_test_app(tmp_path)
    client = TestClient(app)

    conflict = client.put(f"/api/bookings/{ids['hackathon']}/approve")
    assert conflict.status_code == 409
    assert conflict.json()["detail"] == "Conflict with: 'Tech Talk'."

    approved = client.put(f"/api/bookings/{ids['workshop']}/approve")
    assert approved.status_code == 200
    body = approved.json()
    assert body["message"] == "Booking approved."
    assert body["booking"]["status"] == "approved"
    assert body["booking"]["rejection_reason"] is None

    again = client.put(f"/api/bookings/{ids['workshop']}/approve")
    assert again.status_code == 400
    assert again.json()["detail"] == "Status is 'approved'."

    assert client.put("/api/bookings/999/approve").status_code == 404


def test_reject_rules(tmp_path):
    app, repository, ids = _build_test_app(tmp_path)
    client = TestClient(app)
    path = f"/api/bookings/{ids['hackathon']}/reject"

    blank = client.put(path, json={"rejection_reason": "   "})
    assert blank.status_code == 400
    assert blank.json()["detail"] == "Reason required."
    assert client.put(path).status_code == 400

    rejected = client.put(path, json={"rejection_reason": "  Clashes with Tech Talk  "})
    assert rejected.status_code == 200
    assert rejected.json()["booking"]["rejection_reason"] == "Clashes with Tech Talk"
    assert repository.get_booking(ids["hackathon"]).status is BookingStatus.REJECTED

    assert client.put(path, json={"rejection_reason": "again"}).status_code == 400
    assert client.put("/api/bookings/999/reject", json={"rejection_reason": "x"}).status_code == 404


def test_deleted_relations_are_sent_as_null(tmp_path):
    app, repository, ids = _build_test_app(tmp_path)
    repository.delete_venue(ids["ks"])
    client = TestClient(app)

    listing = client.get("/api/bookings/admin/all").json()
    by_id = {b["id"]: b for b in listing["bookings"]}
    assert by_id[ids["ks_event"]]["venue"] is None
    assert by_id[ids["ks_event"]]["department"]["code"] == "CSE"


def test_upcoming_window_starts_at_local_midnight_and_is_clamped(tmp_path):
    app, _, ids = _build_test_app(tmp_path)
    service = app.state.booking_service
    late_evening = datetime(2024, 3, 9, 23, 30, tzinfo=IST)

    week = service.list_upcoming(now=late_evening)
    assert week["days"] == 7
    assert [b["id"] for b in week["bookings"]] == [ids["tech_talk"], ids["ks_event"]]

    month = service.list_upcoming(30, now=late_evening)
    assert [b["id"] for b in month["bookings"]][-1] == ids["april"]
    assert ids["lecture"] not in [b["id"] for b in month["bookings"]]

    assert service.list_upcoming(0, now=late_evening)["days"] == 7
    assert service.list_upcoming(500, now=late_evening)["days"] == 90


def test_upcoming_and_recent_pending_endpoints(tmp_path):
    app, repository, ids = _build_test_app(tmp_path)
    client = TestClient(app)
    soon = datetime.now(IST) + timedelta(days=2)
    record = repository.get_booking(ids["workshop"])
    upcoming_id = repository.create_booking(
        event_name="Orientation",
        start_time=soon,
        end_time=soon + timedelta(hours=2),
        venue_id=ids["ks"],
        department_id=record.department.department_id,
        user_id=record.requester.user_id,
        status=BookingStatus.APPROVED,
    )

    upcoming = client.get("/api/bookings/admin/upcoming", params={"days": "abc"}).json()
    assert upcoming["days"] == 7
    assert [b["id"] for b in upcoming["bookings"]] == [upcoming_id]
    assert client.get("/api/bookings/admin/upcoming", params={"days": 1}).json()["count"] == 0

    latest = client.get("/api/bookings/admin/recent-pending", params={"limit": 1}).json()
    assert latest["limit"] == 1
    assert [b["id"] for b in latest["bookings"]] == [ids["workshop"]]

    default = client.get("/api/bookings/admin/recent-pending").json()
    assert default["limit"] == 5
    assert [b["id"] for b in default["bookings"]] == [ids["workshop"], ids["hackathon"]]
