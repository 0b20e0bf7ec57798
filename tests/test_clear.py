"""
Tests for perform_clear in gcal_sheet_sync.sync.clear.
"""

import asyncio

import pytest

from gcal_sheet_sync.models import CalendarEvent
from gcal_sheet_sync.sanitizer import EventSanitizer
from gcal_sheet_sync.sync.clear import perform_clear
from gcal_sheet_sync.sync.two_way import run_two_way
from tests.conftest import CAL_A
from tests.conftest import CAL_B
from tests.conftest import make_event
from tests.fake_client import FakeCalendarClient
from tests.fake_client import FakeLedger
from tests.fake_client import FakeNotifier


@pytest.fixture
def synced(sync_config, sync_logger):
    """A1 on A and B1 on B, synced both ways."""
    client = FakeCalendarClient({CAL_A: [make_event("A1")], CAL_B: [make_event("B1")]})
    ledger = FakeLedger()
    asyncio.run(run_two_way(sync_config, sync_logger, client, ledger, FakeNotifier()))
    return client, ledger


def _clear(config, stats, logger, client, ledger, target="both"):
    asyncio.run(perform_clear(config, stats, logger, client, ledger, target=target))


def test_clear_both_removes_every_copy(synced, sync_config, sync_stats, sync_logger):
    client, ledger = synced

    _clear(sync_config, sync_stats, sync_logger, client, ledger)

    assert sync_stats.deleted == 2
    assert sync_stats.errors == 0
    assert [e.id for e in client.events(CAL_A)] == ["A1"]
    assert [e.id for e in client.events(CAL_B)] == ["B1"]
    assert ledger.rows == []


def test_clear_one_calendar_only(synced, sync_config, sync_stats, sync_logger):
    client, ledger = synced
    copy_of_a1 = ledger.secondary_for("A1")

    _clear(sync_config, sync_stats, sync_logger, client, ledger, target="b")

    assert sync_stats.deleted == 1
    assert client.deletes == [(CAL_B, copy_of_a1)]
    assert client.event_count(CAL_A) == 2
    assert [r.primary_event_id for r in ledger.records()] == ["B1"]


def test_clear_finds_untracked_copies(sync_config, sync_stats, sync_logger):
    body = EventSanitizer.build_event_body(make_event("A1"), "[A]", CAL_A)
    stray = CalendarEvent.from_api({**body, "id": "stray"})
    client = FakeCalendarClient({CAL_A: [make_event("A1")], CAL_B: [stray, make_event("B1")]})
    ledger = FakeLedger()

    _clear(sync_config, sync_stats, sync_logger, client, ledger)

    assert sync_stats.deleted == 1
    assert client.deletes == [(CAL_B, "stray")]
    assert ledger.delete_calls == []


def test_clear_dry_run_changes_nothing(synced, sync_config, sync_stats, sync_logger):
    client, ledger = synced
    sync_config.dry_run = True

    _clear(sync_config, sync_stats, sync_logger, client, ledger)

    assert sync_stats.deleted == 2
    assert client.deletes == []
    assert len(ledger.rows) == 2


def test_failed_delete_keeps_ledger_row(synced, sync_config, sync_stats, sync_logger):
    client, ledger = synced
    copy_of_a1 = ledger.secondary_for("A1")
    client.fail_deletes = {copy_of_a1}

    _clear(sync_config, sync_stats, sync_logger, client, ledger)

    assert sync_stats.deleted == 1
    assert sync_stats.errors == 1
    assert ledger.secondary_for("A1") == copy_of_a1
    assert ledger.secondary_for("B1") is None


def test_clear_rejects_unknown_target(sync_config, sync_stats, sync_logger):
    with pytest.raises(ValueError):
        _clear(sync_config, sync_stats, sync_logger, FakeCalendarClient(), FakeLedger(), "c")
