"""
Synced-copy construction: turns a source event into the body written to the
other calendar.
"""

from typing import Any

from gcal_sheet_sync.models import CalendarEvent

# Marker written into every synced copy's description.  Events carrying it are
# never synced back, which is what stops A→B→A feedback loops.
SYNC_TAG = "🔄 SYNCED FROM:"

# Private extended properties stamped on synced copies so that a copy whose
# ledger row was never written can be matched back to its source event.
SYNC_SOURCE_CALENDAR_KEY = "syncSourceCalendar"
SYNC_SOURCE_EVENT_KEY = "syncSourceEventId"


class EventSanitizer:
    """Builds synced copies: prefixed title, annotated description, no attendees."""

    @staticmethod
    def room_names(event: CalendarEvent) -> str | None:
        """Comma-joined names of resource (room) attendees, or None."""
        rooms = [a.display_name or a.email for a in event.attendees if a.is_resource]
        return ", ".join(rooms) if rooms else None

    @classmethod
    def build_description(
        cls, event: CalendarEvent, prefix: str, source_calendar_id: str
    ) -> str:
        parts: list[str] = []

        rooms = cls.room_names(event)
        if rooms:
            parts.append(f"📍 Room: {rooms}")

        if event.conference_link:
            parts.append(f"🔗 Meeting: {event.conference_link}")

        if event.description:
            parts.append(f"\n{event.description}")

        # Always last, so the copy is recognisable whatever the source contained.
        parts.append(f"\n{SYNC_TAG} {prefix} ({source_calendar_id})")

        return "\n".join(parts)

    @classmethod
    def build_event_body(
        cls, event: CalendarEvent, prefix: str, source_calendar_id: str
    ) -> dict[str, Any]:
        """
        Build the Google ``Event`` body for creating/updating the synced copy.

        Attendees are never copied (that would send invitations).  An explicit
        source location is kept; otherwise the room names become the location.
        """
        body: dict[str, Any] = {
            "summary": f"{prefix} {event.summary or ''}",
            "description": cls.build_description(event, prefix, source_calendar_id),
            "transparency": event.transparency or "opaque",
            "extendedProperties": {
                "private": {
                    SYNC_SOURCE_CALENDAR_KEY: source_calendar_id,
                    SYNC_SOURCE_EVENT_KEY: event.id,
                }
            },
        }
        if event.start is not None:
            body["start"] = event.start.to_api()
        if event.end is not None:
            body["end"] = event.end.to_api()

        location = event.location or cls.room_names(event)
        if location:
            body["location"] = location

        return body
