"""
Clear operation: remove synced copies and their ledger rows.
"""

from gcal_sheet_sync.gcal_client import sync_window
from gcal_sheet_sync.models import LedgerRecord
from gcal_sheet_sync.models import SyncConfig
from gcal_sheet_sync.models import SyncStats
from gcal_sheet_sync.sync.batching import process_in_batches
from gcal_sheet_sync.sync.utils import is_synced_copy

CLEAR_TARGETS = ("both", "a", "b")


async def perform_clear(
    config: SyncConfig,
    stats: SyncStats,
    logger,
    calendar_client,
    ledger,
    target: str = "both",
):
    """
    Delete every synced copy living on the target calendar(s).

    Copies come from two places: ledger rows whose secondary calendar is a
    target, and a metadata scan for events carrying the sync tag (which also
    catches copies whose ledger row was never written).  Ledger rows are only
    removed for copies that were actually deleted.
    """
    if target not in CLEAR_TARGETS:
        raise ValueError(f"target must be one of {', '.join(CLEAR_TARGETS)}")
    logger.warning("CLEAR MODE: Removing synced events created by this tool...")

    calendars = {
        "both": [config.calendar_a_id, config.calendar_b_id],
        "a": [config.calendar_a_id],
        "b": [config.calendar_b_id],
    }[target]

    records = [r for r in await ledger.load_all() if r.secondary_calendar in calendars]
    to_delete: dict[tuple[str, str], LedgerRecord | None] = {
        (r.secondary_calendar, r.secondary_event_id): r for r in records
    }

    time_min, time_max = sync_window(config.days_ahead)
    for calendar_id in calendars:
        logger.info(f"Scanning {calendar_id} for synced copies...")
        events = await calendar_client.list_events(
            calendar_id, time_min, time_max, config.max_events
        )
        for event in events:
            if event.id and is_synced_copy(event):
                to_delete.setdefault((calendar_id, event.id), None)

    untracked = sum(1 for r in to_delete.values() if r is None)
    logger.info(f"Found {len(to_delete)} synced copies ({untracked} without a ledger row)")

    if config.dry_run:
        logger.info(f"[DRY RUN] Would delete {len(to_delete)} synced copies")
        logger.info(f"[DRY RUN] Would remove {len(records)} ledger rows")
        for calendar_id, event_id in to_delete:
            logger.debug(f"[DRY RUN] Would delete {event_id} from {calendar_id}")
        stats.deleted = len(to_delete)
        return

    async def delete_copy(key: tuple[str, str]) -> None:
        await calendar_client.delete_event(*key)

    outcomes = await process_in_batches(
        list(to_delete), config.batch_size, delete_copy, delay=config.batch_delay
    )

    row_ids = []
    for outcome in outcomes:
        calendar_id, event_id = outcome.item
        if not outcome.ok:
            logger.error(f"Failed to delete {event_id} from {calendar_id}: {outcome.error}")
            stats.errors += 1
            continue
        stats.deleted += 1
        record = to_delete[outcome.item]
        if record is not None:
            row_ids.append(record.row_id)

    if row_ids:
        sheet_id = await ledger.get_sheet_id()
        await ledger.batch_delete(row_ids, sheet_id)

    logger.info(
        f"Clear complete: Removed {stats.deleted} synced copies, {len(row_ids)} ledger rows"
    )
