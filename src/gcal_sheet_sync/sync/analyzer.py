"""
Classify source events against the ledger snapshot.
"""

from gcal_sheet_sync.models import CalendarEvent
from gcal_sheet_sync.models import LedgerRecord
from gcal_sheet_sync.models import SyncAnalysis
from gcal_sheet_sync.sync.utils import compute_signature
from gcal_sheet_sync.sync.utils import is_synced_copy
from gcal_sheet_sync.sync.utils import is_target_in_attendees


def analyze_events(
    events: list[CalendarEvent],
    ledger_records: list[LedgerRecord],
    source_calendar_id: str,
    target_calendar_id: str,
) -> SyncAnalysis:
    """Split source events into create / update / unchanged / skipped."""
    analysis = SyncAnalysis()
    record_map = {record.key: record for record in ledger_records}

    for event in events:
        if not event.id:
            continue

        # Our own copy from the other direction
        if is_synced_copy(event):
            analysis.skipped_duplicate += 1
            continue

        # Both calendars were invited to the same meeting
        if is_target_in_attendees(event, target_calendar_id):
            analysis.skipped_duplicate += 1
            continue

        record = record_map.get((source_calendar_id, event.id))
        if record is None:
            analysis.to_create.append(event)
        elif record.signature == compute_signature(event):
            analysis.unchanged += 1
        else:
            analysis.to_update.append((event, record))

    return analysis
