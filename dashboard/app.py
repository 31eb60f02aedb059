"""Streamlit admin console for the venue booking service."""

from __future__ import annotations

import asyncio
import calendar
import sys
from pathlib import Path
from typing import Optional

import pandas as pd
import streamlit as st

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from venuebook.client.api_client import BookingApiClient
from venuebook.domain.errors import BookingEngineError
from venuebook.domain.models import Booking, BookingStatus
from venuebook.engine.approval import ApprovalStateMachine
from venuebook.engine.filters import ALL, FilterCriteria
from venuebook.engine.intervals import local_timezone
from venuebook.engine.schedule_window import ScheduleWindow, WindowState
from venuebook.utils.config import get_settings

# ==========================================
# Configuration & Constants
# ==========================================
settings = get_settings()
TZ = local_timezone(settings.local_timezone)

# Tile class -> short marker shown on the calendar button.
TILE_MARKERS = {
    "booking-single-day": "●",
    "booking-start": "◀",
    "booking-middle": "━",
    "booking-end": "▶",
}

st.set_page_config(
    page_title="Venue Booking Admin",
    page_icon="🏛️",
    layout="wide",
)


# ==========================================
# Session helpers
# ==========================================
def get_client() -> BookingApiClient:
    if "client" not in st.session_state:
        st.session_state.client = BookingApiClient(settings=settings)
    return st.session_state.client


def get_window() -> ScheduleWindow:
    if "window" not in st.session_state:
        st.session_state.window = ScheduleWindow(get_client(), tz=TZ)
    return st.session_state.window


def get_machine() -> ApprovalStateMachine:
    if "machine" not in st.session_state:
        st.session_state.machine = ApprovalStateMachine(get_client(), settings=settings, tz=TZ)
    return st.session_state.machine


def logout() -> None:
    for key in ("client", "window", "machine", "venues", "departments", "loaded"):
        st.session_state.pop(key, None)


def format_local(booking: Booking, attribute: str) -> str:
    value = getattr(booking, attribute)
    if value is None:
        return "Invalid date"
    return value.astimezone(TZ).strftime("%d %b %Y, %H:%M")


# ==========================================
# Sidebar
# ==========================================
def render_login() -> None:
    client = get_client()
    if client.token:
        st.sidebar.success("Signed in")
        if st.sidebar.button("Log out"):
            logout()
            st.rerun()
        return

    admin_token = st.sidebar.text_input("Admin token", type="password")
    if st.sidebar.button("Log in", type="primary"):
        try:
            client.login(admin_token)
        except BookingEngineError as exc:
            st.sidebar.error(exc.message)
            return
        st.rerun()


# ==========================================
# Overview page
# ==========================================
def booking_rows(bookings: list[Booking]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Event": booking.display_name,
                "Venue": booking.venue.name,
                "Department": booking.department.name,
                "Requester": booking.requester.display_name,
                "Start": format_local(booking, "start_time"),
                "End": format_local(booking, "end_time"),
            }
            for booking in bookings
        ]
    )


def render_overview_page() -> None:
    st.header("📊 Overview")
    client = get_client()

    try:
        stats = client.get_booking_stats()
    except BookingEngineError as exc:
        st.error(exc.message)
        return

    total, pending, approved, rejected = st.columns(4)
    total.metric("Total", stats["total"])
    pending.metric("Pending", stats["pending"])
    approved.metric("Approved", stats["approved"])
    rejected.metric("Rejected", stats["rejected"])

    days = st.slider("Upcoming window (days)", min_value=1, max_value=90, value=7)
    st.write("### Upcoming approved bookings")
    try:
        upcoming = client.list_upcoming_bookings(days)
    except BookingEngineError as exc:
        st.error(exc.message)
    else:
        if upcoming:
            st.dataframe(booking_rows(upcoming), use_container_width=True, hide_index=True)
        else:
            st.info(f"No approved bookings in the next {days} days.")

    st.write("### Latest pending requests")
    try:
        recent = client.list_recent_pending()
    except BookingEngineError as exc:
        st.error(exc.message)
        return
    if recent:
        st.dataframe(booking_rows(recent), use_container_width=True, hide_index=True)
    else:
        st.info("No pending requests.")


# ==========================================
# Schedule page
# ==========================================
def render_calendar(window: ScheduleWindow) -> None:
    headers = st.columns(7)
    for column, name in zip(headers, calendar.day_abbr):
        column.markdown(f"**{name}**")

    grid = window.month_grid()
    weeks = calendar.Calendar(firstweekday=0).monthdatescalendar(window.month.year, window.month.month)
    for week in weeks:
        columns = st.columns(7)
        for column, day in zip(columns, week):
            if day.month != window.month.month:
                column.write("")
                continue
            classes = window.tile_classes(day)
            markers = "".join(TILE_MARKERS[name] for name in classes if name in TILE_MARKERS)
            label = f"{day.day} {markers}".strip()
            button_type = "primary" if "selected-day" in classes else "secondary"
            if column.button(label, key=f"day-{day.isoformat()}", type=button_type):
                window.select_date(day)
                st.rerun()
            if grid[day].touched_count > 1:
                column.caption(f"{grid[day].touched_count} bookings")


def render_schedule_page() -> None:
    st.header("📅 Venue Schedule")
    client = get_client()
    window = get_window()

    if "venues" not in st.session_state:
        try:
            st.session_state.venues = client.list_venues()
        except BookingEngineError as exc:
            st.error(exc.message)
            return
    venues = st.session_state.venues
    if not venues:
        st.info("No venues are configured.")
        return

    venue_by_id = {venue.id: venue for venue in venues}
    venue_ids = list(venue_by_id)
    current = window.venue_id if window.venue_id in venue_by_id else None
    selected_id = st.selectbox(
        "Venue",
        venue_ids,
        index=venue_ids.index(current) if current else 0,
        format_func=lambda venue_id: venue_by_id[venue_id].label,
    )
    window.set_venue(selected_id)

    nav_prev, nav_label, nav_next = st.columns([1, 3, 1])
    if nav_prev.button("‹ Previous"):
        window.previous_month()
    if nav_next.button("Next ›"):
        window.next_month()
    nav_label.subheader(window.month.label)

    if window.state in (WindowState.IDLE, WindowState.LOADING):
        with st.spinner("Loading schedule..."):
            asyncio.run(window.get_bookings())

    if window.state is WindowState.ERROR:
        st.error(window.error_message)
        return

    render_calendar(window)

    if window.selected_date is not None:
        st.write(f"### {window.selected_date.strftime('%A, %d %B %Y')}")
        selected = window.selected_bookings
        if not selected:
            st.info("No approved bookings on this day.")
        for booking in selected:
            with st.container(border=True):
                st.markdown(f"**{booking.display_name}**")
                st.caption(
                    f"{format_local(booking, 'start_time')} → {format_local(booking, 'end_time')}"
                    f" · {booking.department.name} · {booking.requester.display_name}"
                )
                if booking.poster_preview:
                    st.image(booking.poster_preview, width=240)


# ==========================================
# Manage bookings page
# ==========================================
def render_filters(machine: ApprovalStateMachine) -> FilterCriteria:
    if "departments" not in st.session_state:
        try:
            st.session_state.departments = get_client().list_departments()
        except BookingEngineError as exc:
            st.warning(exc.message)
            st.session_state.departments = []
    departments = {item.id: item.name for item in st.session_state.departments}

    col1, col2, col3, col4, col5 = st.columns(5)
    with col1:
        text = st.text_input("Search event or requester")
    with col2:
        status = st.selectbox("Status", [ALL] + [item.value for item in BookingStatus])
    with col3:
        venue_name = st.selectbox("Venue", [ALL] + machine.venue_name_options())
    with col4:
        department_id = st.selectbox(
            "Department",
            [ALL] + list(departments),
            format_func=lambda value: "all" if value == ALL else departments[value],
        )
    with col5:
        use_date = st.checkbox("Filter by date")
        exact_date = st.date_input("Date", disabled=not use_date) if use_date else None
    return FilterCriteria(
        text=text or None,
        status=status,
        venue_name=venue_name,
        department_id=department_id,
        exact_date=exact_date,
    )


def render_actions(machine: ApprovalStateMachine, booking: Booking) -> None:
    busy = machine.guard.locked
    approve_col, reject_col = st.columns(2)
    if approve_col.button("Approve", key=f"approve-{booking.id}", disabled=busy, type="primary"):
        asyncio.run(machine.approve(booking.id))
        st.rerun()
    if reject_col.button("Reject", key=f"reject-{booking.id}", disabled=busy):
        machine.open_rejection_editor(booking.id)
        st.rerun()

    if machine.rejection_editor_id == booking.id:
        reason = st.text_area(
            "Rejection reason",
            value=machine.staged_reason(booking.id),
            key=f"reason-{booking.id}",
        )
        machine.set_rejection_reason(booking.id, reason)
        if machine.editor_error:
            st.error(machine.editor_error)
        if st.button("Confirm rejection", key=f"confirm-{booking.id}", disabled=busy):
            asyncio.run(machine.reject(booking.id))
            st.rerun()


def render_manage_page() -> None:
    st.header("🗂️ Manage Bookings")
    machine = get_machine()

    if st.button("Refresh") or "loaded" not in st.session_state:
        with st.spinner("Loading bookings..."):
            asyncio.run(machine.refresh())
        st.session_state.loaded = True

    if machine.auth_required:
        st.warning("Authentication Error: Please log in again.")
    if machine.load_error:
        st.error(machine.load_error)
    if machine.notices.error:
        st.error(machine.notices.error)
    if machine.notices.success:
        st.success(machine.notices.success)

    criteria = render_filters(machine)
    bookings = machine.filtered(criteria)

    table = pd.DataFrame(
        [
            {
                "Event": booking.display_name,
                "Venue": booking.venue.name,
                "Department": booking.department.name,
                "Requester": booking.requester.display_name,
                "Start": format_local(booking, "start_time"),
                "End": format_local(booking, "end_time"),
                "Status": booking.status.value,
                "Reason": booking.rejection_reason or "",
            }
            for booking in bookings
        ]
    )
    if table.empty:
        st.info("No bookings match the current filters.")
        return
    st.dataframe(table, use_container_width=True, hide_index=True)

    st.write("### Pending review")
    for booking in bookings:
        if booking.status is not BookingStatus.PENDING:
            continue
        with st.expander(f"{booking.display_name} · {booking.venue.name}"):
            if booking.description:
                st.write(booking.description)
            render_actions(machine, booking)


# ==========================================
# Main App Router
# ==========================================
def main() -> None:
    st.sidebar.title("Venue Booking Admin")
    st.sidebar.markdown("---")
    render_login()

    page: Optional[str] = None
    if get_client().token:
        page = st.sidebar.radio("Navigation", ["Overview", "Schedule", "Manage Bookings"])
    st.sidebar.markdown("---")
    st.sidebar.caption(f"API: {settings.api_base_url}")
    st.sidebar.caption(f"Time zone: {settings.local_timezone}")

    if page is None:
        st.info("Log in with the admin token to continue.")
    elif page == "Overview":
        render_overview_page()
    elif page == "Schedule":
        render_schedule_page()
    else:
        render_manage_page()


if __name__ == "__main__":
    main()
