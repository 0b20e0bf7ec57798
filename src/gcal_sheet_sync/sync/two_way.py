"""
Bidirectional sync: one full reconciliation pass.
"""

import asyncio

from gcal_sheet_sync.gcal_client import sync_window
from gcal_sheet_sync.models import CalendarEvent
from gcal_sheet_sync.models import CalendarSyncError
from gcal_sheet_sync.models import SyncConfig
from gcal_sheet_sync.models import SyncDirectionResult
from gcal_sheet_sync.models import SyncOutput
from gcal_sheet_sync.notifier import format_error_summary
from gcal_sheet_sync.notifier import format_failure
from gcal_sheet_sync.sync.direction import sync_direction
from gcal_sheet_sync.sync.orphans import detect_and_delete_orphans


async def fetch_both_calendars(
    config: SyncConfig, logger, calendar_client
) -> tuple[list[CalendarEvent] | None, list[CalendarEvent] | None]:
    """
    Fetch both calendars concurrently.

    A side whose fetch failed comes back as ``None`` (logged, not raised).
    """
    time_min, time_max = sync_window(config.days_ahead)
    results = await asyncio.gather(
        calendar_client.list_events(config.calendar_a_id, time_min, time_max, config.max_events),
        calendar_client.list_events(config.calendar_b_id, time_min, time_max, config.max_events),
        return_exceptions=True,
    )

    fetched: list[list[CalendarEvent] | None] = []
    calendar_ids = (config.calendar_a_id, config.calendar_b_id)
    for name, calendar_id, result in zip("AB", calendar_ids, results):
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, BaseException):
            logger.error(f"Failed to fetch calendar {name} ({calendar_id}) events: {result}")
            fetched.append(None)
        else:
            fetched.append(result)
    return fetched[0], fetched[1]


async def _write_direction(ledger, logger, result: SyncDirectionResult, tag: str) -> int:
    """Flush one direction's pending inserts and updates; return the number of failed writes."""
    failures = 0

    try:
        await ledger.batch_insert(result.pending_inserts)
    except CalendarSyncError as e:
        failures += 1
        # These copies now exist without a ledger row.  The next pass adopts
        # them through the untracked-copy index, but surface them regardless.
        logger.error(f"[{tag}] Ledger insert of {len(result.pending_inserts)} rows failed: {e}")
        for i in result.pending_inserts:
            logger.error(
                f"[{tag}]   untracked copy: {i.primary_calendar}/{i.primary_event_id} "
                f"→ {i.secondary_calendar}/{i.secondary_event_id}"
            )

    try:
        await ledger.batch_update(result.pending_updates)
    except CalendarSyncError as e:
        failures += 1
        logger.error(f"[{tag}] Ledger update of {len(result.pending_updates)} rows failed: {e}")
        for u in result.pending_updates:
            logger.error(
                f"[{tag}]   stale row {u.row_id}: {u.primary_calendar}/{u.primary_event_id} "
                f"→ {u.secondary_event_id}"
            )

    return failures


def _log_summary(logger, output: SyncOutput) -> None:
    a, b, o = output.a_to_b, output.b_to_a, output.orphans
    logger.info("=== Sync Summary ===")
    logger.info(
        f"Calendar A -> B: {a.created} created, {a.updated} updated, "
        f"{a.recovered} recovered, {a.unchanged} unchanged, {a.errors} errors"
    )
    logger.info(
        f"Calendar B -> A: {b.created} created, {b.updated} updated, "
        f"{b.recovered} recovered, {b.unchanged} unchanged, {b.errors} errors"
    )
    logger.info(f"Orphans: {o.deleted} deleted, {o.errors} errors")
    if output.ledger_errors:
        logger.error(f"Ledger writes: {output.ledger_errors} failed")


async def _run_pass(config: SyncConfig, logger, calendar_client, ledger, notifier) -> SyncOutput:
    logger.info(f"Starting calendar sync: {config.calendar_a_id} <-> {config.calendar_b_id}")

    # Step 1: both calendars, concurrently; a failed side degrades to empty
    fetched_a, fetched_b = await fetch_both_calendars(config, logger, calendar_client)
    events_a = fetched_a or []
    events_b = fetched_b or []
    logger.info(f"Fetched {len(events_a)} events from A, {len(events_b)} from B")

    # Step 2: the only ledger read of the pass
    ledger_records = await ledger.load_all()
    logger.info(f"Loaded {len(ledger_records)} synced records")

    ledger_errors = 0

    # Steps 3-4: A -> B, then flush its ledger changes
    a_to_b = await sync_direction(
        config,
        logger,
        calendar_client,
        events_a,
        ledger_records,
        config.calendar_a_id,
        config.calendar_b_id,
        config.calendar_a_prefix,
        target_events=events_b,
        label="A→B",
    )
    if not config.dry_run:
        ledger_errors += await _write_direction(ledger, logger, a_to_b, "A→B")

    # Steps 5-6: B -> A against the same snapshot.  A→B copies are skipped by
    # the sync-tag filter and the two directions never share a ledger key.
    b_to_a = await sync_direction(
        config,
        logger,
        calendar_client,
        events_b,
        ledger_records,
        config.calendar_b_id,
        config.calendar_a_id,
        config.calendar_b_prefix,
        target_events=events_a,
        label="B→A",
    )
    if not config.dry_run:
        ledger_errors += await _write_direction(ledger, logger, b_to_a, "B→A")

    # Step 7: orphans, judged only against calendars that were actually fetched
    orphans = await detect_and_delete_orphans(
        config,
        logger,
        calendar_client,
        fetched_a,
        fetched_b,
        ledger_records,
        config.calendar_a_id,
        config.calendar_b_id,
    )

    # Step 8: one structural delete for every confirmed orphan
    if orphans.pending_deletes:
        row_ids = [d.row_id for d in orphans.pending_deletes]
        try:
            sheet_id = await ledger.get_sheet_id()
            await ledger.batch_delete(row_ids, sheet_id)
        except CalendarSyncError as e:
            ledger_errors += 1
            # The copies are gone; the rows are retried (and re-deleted) next pass.
            logger.error(f"Ledger delete of rows {sorted(row_ids)} failed: {e}")

    # Step 9: summary
    output = SyncOutput(
        a_to_b=a_to_b.stats,
        b_to_a=b_to_a.stats,
        orphans=orphans,
        events_a=len(events_a),
        events_b=len(events_b),
        ledger_records=len(ledger_records),
        ledger_errors=ledger_errors,
    )
    _log_summary(logger, output)

    # Step 10: alert on errors
    if output.total_errors > 0:
        await notifier.notify(format_error_summary(output))

    return output


async def run_two_way(config: SyncConfig, logger, calendar_client, ledger, notifier) -> SyncOutput:
    """Execute one bidirectional reconciliation pass."""
    try:
        return await _run_pass(config, logger, calendar_client, ledger, notifier)
    except CalendarSyncError as e:
        logger.error(f"Sync failed: {e}")
        await notifier.notify(format_failure(e))
        raise
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        await notifier.notify(format_failure(e))
        raise
