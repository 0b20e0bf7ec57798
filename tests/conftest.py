"""
Shared pytest fixtures and event helpers.
"""

import logging

import pytest

from gcal_sheet_sync.models import AllDayEventTime
from gcal_sheet_sync.models import Attendee
from gcal_sheet_sync.models import CalendarEvent
from gcal_sheet_sync.models import LedgerRecord
from gcal_sheet_sync.models import SyncConfig
from gcal_sheet_sync.models import SyncStats
from gcal_sheet_sync.models import TimedEventTime

CAL_A = "calendar-a@example.com"
CAL_B = "calendar-b@example.com"
SPREADSHEET_ID = "spreadsheet-test"


def make_event(
    event_id: str,
    summary: str = "Test Event",
    start: str = "2026-03-01T10:00:00Z",
    end: str = "2026-03-01T11:00:00Z",
    **kwargs,
) -> CalendarEvent:
    """Return a timed event; extra keyword arguments set CalendarEvent fields."""
    return CalendarEvent(
        id=event_id,
        summary=summary,
        start=TimedEventTime(start),
        end=TimedEventTime(end),
        **kwargs,
    )


def make_all_day_event(event_id: str, summary: str = "All Day", day: str = "2026-03-01"):
    return CalendarEvent(
        id=event_id,
        summary=summary,
        start=AllDayEventTime(day),
        end=AllDayEventTime(day),
    )


def make_room(name: str) -> Attendee:
    email = f"{name.lower().replace(' ', '-')}@resource.example.com"
    return Attendee(email=email, display_name=name, is_resource=True)


def make_record(
    row_id: int,
    primary_event_id: str,
    secondary_event_id: str,
    primary_calendar: str = CAL_A,
    secondary_calendar: str = CAL_B,
    signature: str = "",
) -> LedgerRecord:
    return LedgerRecord(
        row_id=row_id,
        primary_calendar=primary_calendar,
        primary_event_id=primary_event_id,
        secondary_calendar=secondary_calendar,
        secondary_event_id=secondary_event_id,
        signature=signature,
        created_at="2026-01-01T00:00:00.000Z",
        last_updated="2026-01-01T00:00:00.000Z",
    )


@pytest.fixture
def sync_config():
    return SyncConfig(
        calendar_a_id=CAL_A,
        calendar_b_id=CAL_B,
        spreadsheet_id=SPREADSHEET_ID,
        calendar_token="cal-token",
        sheets_token="sheets-token",
        batch_delay=0,
    )


@pytest.fixture
def sync_logger():
    return logging.getLogger("test_sync")


@pytest.fixture
def sync_stats():
    return SyncStats()
