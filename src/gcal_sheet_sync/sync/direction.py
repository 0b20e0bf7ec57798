"""
One-direction replication: source calendar → target calendar.
"""

from gcal_sheet_sync.models import CalendarEvent
from gcal_sheet_sync.models import LedgerRecord
from gcal_sheet_sync.models import PendingInsert
from gcal_sheet_sync.models import PendingUpdate
from gcal_sheet_sync.models import SyncConfig
from gcal_sheet_sync.models import SyncDirectionResult
from gcal_sheet_sync.models import SyncStats
from gcal_sheet_sync.sanitizer import EventSanitizer
from gcal_sheet_sync.sync.analyzer import analyze_events
from gcal_sheet_sync.sync.batching import process_in_batches
from gcal_sheet_sync.sync.utils import build_orphan_index
from gcal_sheet_sync.sync.utils import compute_signature
from gcal_sheet_sync.sync.utils import event_time_text


def _pending_insert(
    event: CalendarEvent, source_calendar_id: str, target_calendar_id: str, copy_id: str
) -> PendingInsert:
    return PendingInsert(
        primary_calendar=source_calendar_id,
        primary_event_id=event.id,
        secondary_calendar=target_calendar_id,
        secondary_event_id=copy_id,
        summary=event.summary or "",
        start=event_time_text(event.start),
        end=event_time_text(event.end),
        signature=compute_signature(event),
    )


def _pending_update(event: CalendarEvent, record: LedgerRecord) -> PendingUpdate:
    return PendingUpdate(
        row_id=record.row_id,
        primary_calendar=record.primary_calendar,
        primary_event_id=record.primary_event_id,
        secondary_calendar=record.secondary_calendar,
        secondary_event_id=record.secondary_event_id,
        summary=event.summary or "",
        start=event_time_text(event.start),
        end=event_time_text(event.end),
        signature=compute_signature(event),
        created_at=record.created_at,
    )


async def sync_direction(
    config: SyncConfig,
    logger,
    calendar_client,
    source_events: list[CalendarEvent],
    ledger_records: list[LedgerRecord],
    source_calendar_id: str,
    target_calendar_id: str,
    prefix: str,
    target_events: list[CalendarEvent] | None = None,
    label: str | None = None,
) -> SyncDirectionResult:
    """
    Replicate new and changed source events onto the target calendar.

    Calendar writes happen here; ledger writes never do.  Every successful
    write is returned as a pending ledger mutation for the caller to flush.
    ``target_events`` (the target calendar's already-fetched events) lets
    untracked copies from an earlier, partially failed pass be adopted
    instead of duplicated.
    """
    tag = f"[{label or f'{source_calendar_id}→{target_calendar_id}'}]"
    stats = SyncStats()
    result = SyncDirectionResult(stats=stats)

    analysis = analyze_events(source_events, ledger_records, source_calendar_id, target_calendar_id)
    stats.unchanged = analysis.unchanged
    stats.skipped = analysis.skipped_duplicate
    logger.info(
        f"{tag} {len(analysis.to_create)} to create, {len(analysis.to_update)} to update, "
        f"{analysis.unchanged} unchanged, {analysis.skipped_duplicate} skipped"
    )

    if config.dry_run:
        for event in analysis.to_create:
            logger.info(f"[DRY RUN] {tag} Would CREATE: {event.id} ({event.summary or ''})")
            stats.created += 1
        for event, record in analysis.to_update:
            logger.info(
                f"[DRY RUN] {tag} Would UPDATE: {event.id} -> {record.secondary_event_id}"
            )
            stats.updated += 1
        return result

    orphan_index = build_orphan_index(target_events, ledger_records)

    # -- Creates -------------------------------------------------------------
    async def create_copy(event: CalendarEvent) -> tuple[str, bool]:
        body = EventSanitizer.build_event_body(event, prefix, source_calendar_id)
        existing_id = orphan_index.get((source_calendar_id, event.id))
        if existing_id:
            # A previous pass created this copy but never recorded it.
            await calendar_client.update_event(target_calendar_id, existing_id, body)
            return existing_id, True
        created = await calendar_client.create_event(target_calendar_id, body)
        return created.id, False

    create_outcomes = await process_in_batches(
        analysis.to_create, config.batch_size, create_copy, delay=config.batch_delay
    )
    for outcome in create_outcomes:
        event = outcome.item
        if not outcome.ok:
            logger.error(f"{tag} Failed to create copy of {event.id}: {outcome.error}")
            stats.errors += 1
            continue
        copy_id, recovered = outcome.value
        result.pending_inserts.append(
            _pending_insert(event, source_calendar_id, target_calendar_id, copy_id)
        )
        if recovered:
            logger.info(f"{tag} Recovered untracked copy: {event.id} → {copy_id}")
            stats.recovered += 1
        else:
            logger.debug(f"{tag} Created {copy_id} from {event.id}")
            stats.created += 1

    # -- Updates -------------------------------------------------------------
    async def update_copy(pair: tuple[CalendarEvent, LedgerRecord]) -> None:
        event, record = pair
        body = EventSanitizer.build_event_body(event, prefix, source_calendar_id)
        await calendar_client.update_event(target_calendar_id, record.secondary_event_id, body)

    update_outcomes = await process_in_batches(
        analysis.to_update, config.batch_size, update_copy, delay=config.batch_delay
    )
    for outcome in update_outcomes:
        event, record = outcome.item
        if not outcome.ok:
            logger.error(
                f"{tag} Failed to update {record.secondary_event_id} from {event.id}: "
                f"{outcome.error}"
            )
            stats.errors += 1
            continue
        result.pending_updates.append(_pending_update(event, record))
        logger.debug(f"{tag} Updated {record.secondary_event_id} from {event.id}")
        stats.updated += 1

    return result
