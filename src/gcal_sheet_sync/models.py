"""
Pure data models, no HTTP imports.
"""

from dataclasses import dataclass
from dataclasses import field
from pathlib import Path

DEFAULT_CONFIG = Path.home() / ".config/gcal-sheet-sync.conf"

DEFAULT_CALENDAR_A_PREFIX = "[A]"
DEFAULT_CALENDAR_B_PREFIX = "[B]"
DEFAULT_MAX_EVENTS = 2500
DEFAULT_DAYS_AHEAD = 180
DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY = 1.0


class CalendarSyncError(Exception):
    """Base exception for calendar sync errors."""

    pass


class ConfigError(CalendarSyncError):
    """Raised when the sync configuration is incomplete or invalid."""

    pass


# ---------------------------------------------------------------------------
# Event timing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimedEventTime:
    """A precise instant, optionally pinned to an IANA timezone."""

    date_time: str
    time_zone: str | None = None

    def to_api(self) -> dict[str, str]:
        if self.time_zone:
            return {"dateTime": self.date_time, "timeZone": self.time_zone}
        return {"dateTime": self.date_time}

    def as_text(self) -> str:
        return self.date_time


@dataclass(frozen=True)
class AllDayEventTime:
    """A whole-day date (YYYY-MM-DD)."""

    date: str

    def to_api(self) -> dict[str, str]:
        return {"date": self.date}

    def as_text(self) -> str:
        return self.date


EventTime = TimedEventTime | AllDayEventTime


def event_time_from_api(payload) -> EventTime | None:
    """Build an EventTime from a Google ``start``/``end`` object."""
    if not isinstance(payload, dict):
        return None
    if payload.get("dateTime"):
        return TimedEventTime(payload["dateTime"], payload.get("timeZone") or None)
    if payload.get("date"):
        return AllDayEventTime(payload["date"])
    return None


# ---------------------------------------------------------------------------
# Calendar events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Attendee:
    email: str
    display_name: str | None = None
    is_resource: bool = False


@dataclass
class CalendarEvent:
    """One event as seen from a Google calendar."""

    id: str
    summary: str | None = None
    start: EventTime | None = None
    end: EventTime | None = None
    location: str | None = None
    description: str | None = None
    attendees: list[Attendee] = field(default_factory=list)
    conference_link: str | None = None
    transparency: str | None = None
    status: str | None = None
    private_properties: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_api(cls, payload: dict) -> "CalendarEvent":
        """Parse a Google Calendar ``Event`` resource."""
        attendees = [
            Attendee(
                email=a.get("email", ""),
                display_name=a.get("displayName"),
                is_resource=bool(a.get("resource", False)),
            )
            for a in payload.get("attendees") or []
            if isinstance(a, dict)
        ]
        extended = payload.get("extendedProperties") or {}
        private = extended.get("private") or {}
        return cls(
            id=payload.get("id") or "",
            summary=payload.get("summary"),
            start=event_time_from_api(payload.get("start")),
            end=event_time_from_api(payload.get("end")),
            location=payload.get("location"),
            description=payload.get("description"),
            attendees=attendees,
            conference_link=payload.get("hangoutLink"),
            transparency=payload.get("transparency"),
            status=payload.get("status"),
            private_properties={str(k): str(v) for k, v in private.items()},
        )


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------

LEDGER_COLUMNS = (
    "primary_calendar",
    "primary_event_id",
    "secondary_calendar",
    "secondary_event_id",
    "event_summary",
    "event_start",
    "event_end",
    "event_signature",
    "created_at",
    "last_updated",
    "last_checked",
)


@dataclass
class LedgerRecord:
    """One tracked primary → secondary mapping (one sheet row)."""

    row_id: int
    primary_calendar: str
    primary_event_id: str
    secondary_calendar: str
    secondary_event_id: str
    summary: str = ""
    start: str = ""
    end: str = ""
    signature: str = ""
    created_at: str = ""
    last_updated: str = ""
    last_checked: str = ""

    @property
    def key(self) -> tuple[str, str]:
        return (self.primary_calendar, self.primary_event_id)

    @classmethod
    def from_row(cls, row: list, row_id: int) -> "LedgerRecord":
        cells = [str(c) for c in row] + [""] * (len(LEDGER_COLUMNS) - len(row))
        return cls(row_id, *cells[: len(LEDGER_COLUMNS)])


@dataclass
class PendingInsert:
    primary_calendar: str
    primary_event_id: str
    secondary_calendar: str
    secondary_event_id: str
    summary: str
    start: str
    end: str
    signature: str


@dataclass
class PendingUpdate:
    row_id: int
    primary_calendar: str
    primary_event_id: str
    secondary_calendar: str
    secondary_event_id: str
    summary: str
    start: str
    end: str
    signature: str
    created_at: str


@dataclass
class PendingDelete:
    row_id: int
    primary_calendar: str = ""
    primary_event_id: str = ""


# ---------------------------------------------------------------------------
# Sync results
# ---------------------------------------------------------------------------


@dataclass
class SyncAnalysis:
    """Per-direction classification of source events. Never persisted."""

    to_create: list[CalendarEvent] = field(default_factory=list)
    to_update: list[tuple[CalendarEvent, LedgerRecord]] = field(default_factory=list)
    unchanged: int = 0
    skipped_duplicate: int = 0


@dataclass
class SyncStats:
    """Statistics for one sync direction."""

    created: int = 0
    updated: int = 0
    deleted: int = 0
    errors: int = 0
    unchanged: int = 0
    skipped: int = 0
    recovered: int = 0


@dataclass
class SyncDirectionResult:
    stats: SyncStats
    pending_inserts: list[PendingInsert] = field(default_factory=list)
    pending_updates: list[PendingUpdate] = field(default_factory=list)


@dataclass
class OrphanDetectionResult:
    deleted: int = 0
    errors: int = 0
    pending_deletes: list[PendingDelete] = field(default_factory=list)


@dataclass
class SyncOutput:
    """Summary of one full reconciliation pass."""

    a_to_b: SyncStats
    b_to_a: SyncStats
    orphans: OrphanDetectionResult
    events_a: int = 0
    events_b: int = 0
    ledger_records: int = 0
    ledger_errors: int = 0

    @property
    def total_errors(self) -> int:
        return self.a_to_b.errors + self.b_to_a.errors + self.orphans.errors + self.ledger_errors


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class SyncConfig:
    """Configuration for one reconciliation pass."""

    calendar_a_id: str
    calendar_b_id: str
    spreadsheet_id: str
    calendar_token: str = ""
    sheets_token: str = ""
    calendar_a_prefix: str = DEFAULT_CALENDAR_A_PREFIX
    calendar_b_prefix: str = DEFAULT_CALENDAR_B_PREFIX
    max_events: int = DEFAULT_MAX_EVENTS
    days_ahead: int = DEFAULT_DAYS_AHEAD
    batch_size: int = DEFAULT_BATCH_SIZE
    batch_delay: float = DEFAULT_BATCH_DELAY
    telegram_bot_token: str | None = None
    telegram_chat_id: str | None = None
    dry_run: bool = False
    clear: bool = False
    clear_target: str = "both"  # "both", "a" or "b"
    verbose: bool = False
    yes: bool = False  # Auto-confirm without prompting

    def validate(self) -> None:
        missing = [
            name
            for name in ("calendar_a_id", "calendar_b_id", "spreadsheet_id")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")
        if self.calendar_a_id == self.calendar_b_id:
            raise ConfigError("Calendar A and calendar B must be different calendars")
        if self.max_events < 1:
            raise ConfigError("max_events must be at least 1")
        if self.days_ahead < 1:
            raise ConfigError("days_ahead must be at least 1")
        if self.batch_size < 1:
            raise ConfigError("batch_size must be at least 1")
        if self.batch_delay < 0:
            raise ConfigError("batch_delay must not be negative")

    @property
    def alerting_enabled(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)
