"""
Stateless event-inspection helpers: change signatures and loop guards.
"""

import json

from gcal_sheet_sync.models import CalendarEvent
from gcal_sheet_sync.models import EventTime
from gcal_sheet_sync.sanitizer import SYNC_SOURCE_CALENDAR_KEY
from gcal_sheet_sync.sanitizer import SYNC_SOURCE_EVENT_KEY
from gcal_sheet_sync.sanitizer import SYNC_TAG


def _canonical_time(value: EventTime | None) -> str:
    if value is None:
        return ""
    return json.dumps(value.to_api(), sort_keys=True, separators=(",", ":"))


def compute_signature(event: CalendarEvent) -> str:
    """
    Fingerprint of the fields whose change should be propagated.

    Attendees and server-managed fields are excluded: they change without the
    user editing the event.
    """
    return "|".join(
        [
            event.summary or "",
            _canonical_time(event.start),
            _canonical_time(event.end),
            event.location or "",
            event.transparency or "",
            event.conference_link or "",
            event.description or "",
        ]
    )


def event_time_text(value: EventTime | None) -> str:
    """The ledger's plain-text rendering of a start/end value."""
    return value.as_text() if value is not None else ""


def is_synced_copy(event: CalendarEvent) -> bool:
    """Return True if the event is a copy created by this tool."""
    return SYNC_TAG in (event.description or "")


def is_target_in_attendees(event: CalendarEvent, target_calendar_id: str) -> bool:
    """Return True if the target calendar was invited to the event directly."""
    return any(a.email == target_calendar_id for a in event.attendees)


def sync_source_of(event: CalendarEvent) -> tuple[str, str] | None:
    """(source calendar, source event id) stamped on a synced copy, if any."""
    calendar_id = event.private_properties.get(SYNC_SOURCE_CALENDAR_KEY)
    event_id = event.private_properties.get(SYNC_SOURCE_EVENT_KEY)
    if calendar_id and event_id:
        return (calendar_id, event_id)
    return None


def build_orphan_index(target_events, ledger_records) -> dict[tuple[str, str], str]:
    """
    Map (source calendar, source event id) → copy id for synced copies that no
    ledger record points at.

    Such copies are left behind when a calendar create succeeded but the
    following ledger write did not.
    """
    tracked = {r.secondary_event_id for r in ledger_records}
    index: dict[tuple[str, str], str] = {}
    for event in target_events or []:
        if not event.id or event.id in tracked or not is_synced_copy(event):
            continue
        source = sync_source_of(event)
        if source is not None:
            index.setdefault(source, event.id)
    return index
