"""
Google Calendar API v3 wrapper.
"""

from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import Any
from urllib.parse import quote

from gcal_sheet_sync.google_api import GoogleAPIClient
from gcal_sheet_sync.google_api import GoogleAPIError
from gcal_sheet_sync.google_api import safe_error_message
from gcal_sheet_sync.models import CalendarEvent

GOOGLE_CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"

# Google caps a single events.list page at 2500 items.
_MAX_PAGE_SIZE = 2500

# 404 and 410 Gone both mean the event no longer exists.
_ALREADY_GONE_STATUS_CODES = {404, 410}


def _rfc3339(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def sync_window(days_ahead: int, now: datetime | None = None) -> tuple[datetime, datetime]:
    """Return (time_min, time_max): from one day ago to ``days_ahead`` days out."""
    now = now or datetime.now(timezone.utc)
    return now - timedelta(days=1), now + timedelta(days=days_ahead)


class GoogleCalendarClient(GoogleAPIClient):
    """Async wrapper for the Google Calendar event operations used by sync."""

    base_url = GOOGLE_CALENDAR_API_BASE_URL

    @staticmethod
    def _events_path(calendar_id: str, event_id: str | None = None) -> str:
        path = f"/calendars/{quote(calendar_id, safe='')}/events"
        if event_id is not None:
            path += f"/{quote(event_id, safe='')}"
        return path

    async def get_calendar(self, calendar_id: str) -> dict[str, Any]:
        """Return the calendar's metadata resource."""
        return await self._request_json("GET", f"/calendars/{quote(calendar_id, safe='')}")

    async def list_events(
        self,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
        max_results: int,
    ) -> list[CalendarEvent]:
        """Fetch single (expanded) events in the window, following page tokens."""
        if max_results < 1:
            raise ValueError("max_results must be at least 1")

        events: list[CalendarEvent] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {
                "timeMin": _rfc3339(time_min),
                "timeMax": _rfc3339(time_max),
                "maxResults": min(max_results - len(events), _MAX_PAGE_SIZE),
                "singleEvents": "true",
                "orderBy": "startTime",
            }
            if page_token:
                params["pageToken"] = page_token

            payload = await self._request_json("GET", self._events_path(calendar_id), params=params)
            for item in payload.get("items") or []:
                if isinstance(item, dict):
                    events.append(CalendarEvent.from_api(item))

            page_token = payload.get("nextPageToken")
            if not page_token or len(events) >= max_results:
                return events[:max_results]

    async def create_event(self, calendar_id: str, body: dict[str, Any]) -> CalendarEvent:
        """Create an event and return it as stored by the server."""
        payload = await self._request_json("POST", self._events_path(calendar_id), json_body=body)
        created = CalendarEvent.from_api(payload)
        if not created.id:
            raise GoogleAPIError(status_code=200, message="Created event has no id")
        return created

    async def update_event(
        self, calendar_id: str, event_id: str, body: dict[str, Any]
    ) -> CalendarEvent:
        """Replace an existing event's content (full update, not a patch)."""
        payload = await self._request_json(
            "PUT", self._events_path(calendar_id, event_id), json_body=body
        )
        return CalendarEvent.from_api(payload)

    async def delete_event(self, calendar_id: str, event_id: str) -> None:
        """Delete an event; an event that is already gone counts as deleted."""
        response = await self._request("DELETE", self._events_path(calendar_id, event_id))
        if response.status_code in _ALREADY_GONE_STATUS_CODES:
            return
        if response.status_code < 200 or response.status_code >= 300:
            raise GoogleAPIError(
                status_code=response.status_code,
                message=safe_error_message(response),
            )
