"""
Orphan pruning: remove copies whose primary event has disappeared.
"""

from gcal_sheet_sync.models import CalendarEvent
from gcal_sheet_sync.models import LedgerRecord
from gcal_sheet_sync.models import OrphanDetectionResult
from gcal_sheet_sync.models import PendingDelete
from gcal_sheet_sync.models import SyncConfig
from gcal_sheet_sync.sync.batching import process_in_batches


def find_orphans(
    events_a: list[CalendarEvent] | None,
    events_b: list[CalendarEvent] | None,
    ledger_records: list[LedgerRecord],
    calendar_a_id: str,
    calendar_b_id: str,
) -> list[LedgerRecord]:
    """
    Records whose primary event is missing from its calendar's current fetch.

    ``None`` for a side means its fetch failed: nothing is known about that
    calendar, so none of its records are orphans.
    """
    current_ids: dict[str, set[str]] = {}
    if events_a is not None:
        current_ids[calendar_a_id] = {e.id for e in events_a}
    if events_b is not None:
        current_ids[calendar_b_id] = {e.id for e in events_b}

    return [
        record
        for record in ledger_records
        if record.primary_calendar in current_ids
        and record.primary_event_id not in current_ids[record.primary_calendar]
    ]


async def detect_and_delete_orphans(
    config: SyncConfig,
    logger,
    calendar_client,
    events_a: list[CalendarEvent] | None,
    events_b: list[CalendarEvent] | None,
    ledger_records: list[LedgerRecord],
    calendar_a_id: str,
    calendar_b_id: str,
) -> OrphanDetectionResult:
    """
    Delete the copies of vanished primary events.

    A ledger row is only queued for deletion once its copy is confirmed gone;
    a failed calendar delete keeps the row so the next pass retries it.
    """
    result = OrphanDetectionResult()
    orphans = find_orphans(events_a, events_b, ledger_records, calendar_a_id, calendar_b_id)
    if not orphans:
        return result

    logger.info(f"Found {len(orphans)} orphaned synced events")

    if config.dry_run:
        for record in orphans:
            logger.info(
                f"[DRY RUN] Would DELETE: {record.secondary_event_id} "
                f"(primary {record.primary_event_id} gone from {record.primary_calendar})"
            )
            result.deleted += 1
        return result

    async def delete_copy(record: LedgerRecord) -> None:
        await calendar_client.delete_event(record.secondary_calendar, record.secondary_event_id)

    outcomes = await process_in_batches(
        orphans, config.batch_size, delete_copy, delay=config.batch_delay
    )
    for outcome in outcomes:
        record = outcome.item
        if not outcome.ok:
            logger.error(
                f"Failed to delete orphan {record.secondary_event_id} "
                f"from {record.secondary_calendar}: {outcome.error}"
            )
            result.errors += 1
            continue
        result.pending_deletes.append(
            PendingDelete(record.row_id, record.primary_calendar, record.primary_event_id)
        )
        logger.debug(f"Deleted orphan {record.secondary_event_id} ({record.primary_event_id} gone)")
        result.deleted += 1

    return result
