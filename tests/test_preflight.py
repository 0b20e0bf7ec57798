"""
Tests for the preflight checks in gcal_sheet_sync.preflight.
"""

import asyncio
import io

from rich.console import Console

from gcal_sheet_sync.preflight import collect_issues
from gcal_sheet_sync.preflight import run_preflight_checks
from tests.conftest import CAL_A
from tests.conftest import CAL_B
from tests.fake_client import FakeCalendarClient
from tests.fake_client import FakeLedger


def _issues(config, client, ledger):
    return asyncio.run(collect_issues(config, client, ledger))


def test_all_reachable(sync_config):
    client = FakeCalendarClient({CAL_A: [], CAL_B: []})
    assert _issues(sync_config, client, FakeLedger()) == []


def test_unknown_calendar(sync_config):
    client = FakeCalendarClient({CAL_A: []})

    [(label, detail, hint)] = _issues(sync_config, client, FakeLedger())

    assert label == "Calendar B"
    assert CAL_B in detail
    assert hint == "No such calendar — check the configured ID"


def test_missing_ledger_sheet(sync_config):
    ledger = FakeLedger()
    ledger.sheets = ["Sheet1"]

    [(label, _, hint)] = _issues(sync_config, FakeCalendarClient({CAL_A: [], CAL_B: []}), ledger)

    assert label == "Ledger sheet"
    assert hint == "Run: gcal-sheet-sync init"


def test_unreachable_spreadsheet(sync_config):
    ledger = FakeLedger()
    ledger.fail_load = True

    [(label, _, hint)] = _issues(sync_config, FakeCalendarClient({CAL_A: [], CAL_B: []}), ledger)

    assert label == "Ledger spreadsheet"
    assert "spreadsheet" in hint


def test_missing_tokens_fail_without_network(sync_config):
    sync_config.calendar_token = ""
    sync_config.sheets_token = ""
    output = io.StringIO()

    assert run_preflight_checks(sync_config, Console(file=output, width=120)) is False
    assert "Preflight checks failed" in output.getvalue()
    assert "GCAL_OAUTH_TOKEN" in output.getvalue()
