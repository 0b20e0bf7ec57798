"""
Google Sheets ledger persistence for sync tracking.

The ledger is a single sheet (``synced_events``) whose first row is a header
and whose remaining rows each map one primary event to its synced copy.  Rows
are addressed by their 1-based sheet row number, which is only stable until
the next structural delete.
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from datetime import timezone
from typing import Any
from urllib.parse import quote

from gcal_sheet_sync.google_api import GoogleAPIClient
from gcal_sheet_sync.models import LEDGER_COLUMNS
from gcal_sheet_sync.models import CalendarSyncError
from gcal_sheet_sync.models import LedgerRecord
from gcal_sheet_sync.models import PendingInsert
from gcal_sheet_sync.models import PendingUpdate

logger = logging.getLogger(__name__)

GOOGLE_SHEETS_API_BASE_URL = "https://sheets.googleapis.com/v4"
SHEET_NAME = "synced_events"
LAST_COLUMN = "K"
FULL_RANGE = f"{SHEET_NAME}!A:{LAST_COLUMN}"
HEADER_RANGE = f"{SHEET_NAME}!A1:{LAST_COLUMN}1"


def now_iso() -> str:
    """UTC timestamp in the ledger's ISO-8601 format (millisecond precision, Z suffix)."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def row_range(row_id: int) -> str:
    return f"{SHEET_NAME}!A{row_id}:{LAST_COLUMN}{row_id}"


def descending_row_ids(row_ids: Iterable[int]) -> list[int]:
    """Unique row ids, highest first, so earlier deletes never shift later ones."""
    return sorted(set(row_ids), reverse=True)


def build_delete_requests(row_ids: Iterable[int], sheet_id: int) -> list[dict[str, Any]]:
    """One ``deleteDimension`` request per row, ordered bottom-up."""
    return [
        {
            "deleteDimension": {
                "range": {
                    "sheetId": sheet_id,
                    "dimension": "ROWS",
                    "startIndex": row_id - 1,  # 0-indexed
                    "endIndex": row_id,  # exclusive
                }
            }
        }
        for row_id in descending_row_ids(row_ids)
    ]


def summarize_records(records: list[LedgerRecord]) -> list[dict[str, Any]]:
    """Group records by (primary calendar, secondary calendar) for status reports."""
    groups: dict[tuple[str, str], dict[str, Any]] = {}
    for record in records:
        key = (record.primary_calendar, record.secondary_calendar)
        group = groups.setdefault(
            key,
            {
                "primary_calendar": record.primary_calendar,
                "secondary_calendar": record.secondary_calendar,
                "count": 0,
                "last_updated": "",
            },
        )
        group["count"] += 1
        # ISO-8601 UTC strings sort chronologically.
        group["last_updated"] = max(group["last_updated"], record.last_updated)
    return list(groups.values())


class SheetLedger(GoogleAPIClient):
    """Ledger store backed by one Google spreadsheet."""

    base_url = GOOGLE_SHEETS_API_BASE_URL

    def __init__(self, spreadsheet_id: str, access_token: str, **kwargs):
        super().__init__(access_token, **kwargs)
        self.spreadsheet_id = spreadsheet_id

    @property
    def _path(self) -> str:
        return f"/spreadsheets/{quote(self.spreadsheet_id, safe='')}"

    def _values_path(self, a1_range: str) -> str:
        return f"{self._path}/values/{quote(a1_range, safe='')}"

    # ------------------------------------------------------------------ #
    # Reads                                                                #
    # ------------------------------------------------------------------ #

    async def get_spreadsheet(self) -> dict[str, Any]:
        """Return spreadsheet metadata (title and sheet properties)."""
        return await self._request_json(
            "GET", self._path, params={"fields": "properties.title,sheets.properties"}
        )

    async def load_all(self) -> list[LedgerRecord]:
        """Load every tracked record; row ids are 1-based sheet rows."""
        payload = await self._request_json("GET", self._values_path(FULL_RANGE))
        rows = payload.get("values") or []
        if len(rows) <= 1:
            return []  # Only header or empty

        records = [LedgerRecord.from_row(row, index + 2) for index, row in enumerate(rows[1:])]
        return [r for r in records if r.primary_calendar != ""]

    async def get_sheet_id(self) -> int:
        """Return the numeric id of the ledger sheet (needed for structural deletes)."""
        spreadsheet = await self.get_spreadsheet()
        for sheet in spreadsheet.get("sheets") or []:
            properties = sheet.get("properties") or {}
            if properties.get("title") == SHEET_NAME:
                return int(properties.get("sheetId", 0))
        raise CalendarSyncError(
            f"Sheet '{SHEET_NAME}' not found in spreadsheet {self.spreadsheet_id}"
        )

    # ------------------------------------------------------------------ #
    # Batched writes                                                       #
    # ------------------------------------------------------------------ #

    async def batch_insert(self, inserts: list[PendingInsert]) -> None:
        """Append all new records in a single call."""
        if not inserts:
            return
        now = now_iso()
        values = [
            [
                i.primary_calendar,
                i.primary_event_id,
                i.secondary_calendar,
                i.secondary_event_id,
                i.summary,
                i.start,
                i.end,
                i.signature,
                now,
                now,
                now,
            ]
            for i in inserts
        ]
        await self._request_json(
            "POST",
            f"{self._values_path(FULL_RANGE)}:append",
            params={"valueInputOption": "RAW", "insertDataOption": "INSERT_ROWS"},
            json_body={"values": values},
        )
        logger.debug(f"Appended {len(values)} ledger rows")

    async def batch_update(self, updates: list[PendingUpdate]) -> None:
        """Rewrite all changed rows in a single multi-range call."""
        if not updates:
            return
        now = now_iso()
        data = [
            {
                "range": row_range(u.row_id),
                "values": [
                    [
                        u.primary_calendar,
                        u.primary_event_id,
                        u.secondary_calendar,
                        u.secondary_event_id,
                        u.summary,
                        u.start,
                        u.end,
                        u.signature,
                        u.created_at,
                        now,
                        now,
                    ]
                ],
            }
            for u in updates
        ]
        await self._request_json(
            "POST",
            f"{self._path}/values:batchUpdate",
            json_body={"valueInputOption": "RAW", "data": data},
        )
        logger.debug(f"Updated {len(data)} ledger rows")

    async def batch_delete(self, row_ids: list[int], sheet_id: int) -> None:
        """Remove all given rows in one structural request (bottom-up)."""
        if not row_ids:
            return
        requests = build_delete_requests(row_ids, sheet_id)
        await self._request_json(
            "POST", f"{self._path}:batchUpdate", json_body={"requests": requests}
        )
        logger.debug(f"Deleted {len(requests)} ledger rows")

    # ------------------------------------------------------------------ #
    # Schema bootstrap                                                     #
    # ------------------------------------------------------------------ #

    async def init_schema(self) -> None:
        """Ensure the ledger sheet exists with the correct header row. Idempotent."""
        spreadsheet = await self.get_spreadsheet()
        sheets = spreadsheet.get("sheets") or []
        titles = [(s.get("properties") or {}).get("title") for s in sheets]

        if SHEET_NAME not in titles:
            first = (sheets[0].get("properties") or {}) if sheets else {}
            if len(sheets) == 1 and first.get("title") == "Sheet1":
                logger.info(f"Renaming Sheet1 to {SHEET_NAME}")
                request = {
                    "updateSheetProperties": {
                        "properties": {"sheetId": first.get("sheetId"), "title": SHEET_NAME},
                        "fields": "title",
                    }
                }
            else:
                logger.info(f"Adding sheet {SHEET_NAME}")
                request = {"addSheet": {"properties": {"title": SHEET_NAME}}}
            await self._request_json(
                "POST", f"{self._path}:batchUpdate", json_body={"requests": [request]}
            )

        header = await self._request_json("GET", self._values_path(HEADER_RANGE))
        existing = (header.get("values") or [[]])[0]
        if existing and existing[0] == LEDGER_COLUMNS[0]:
            return

        logger.info("Writing ledger header row")
        await self._request_json(
            "PUT",
            self._values_path(HEADER_RANGE),
            params={"valueInputOption": "RAW"},
            json_body={"values": [list(LEDGER_COLUMNS)]},
        )
