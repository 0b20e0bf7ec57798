"""
Tests for SheetLedger request shapes, against httpx.MockTransport.
"""

import asyncio
import json

import httpx
import pytest

from gcal_sheet_sync.google_api import GoogleAPIError
from gcal_sheet_sync.ledger import HEADER_RANGE
from gcal_sheet_sync.ledger import SHEET_NAME
from gcal_sheet_sync.ledger import SheetLedger
from gcal_sheet_sync.ledger import build_delete_requests
from gcal_sheet_sync.ledger import descending_row_ids
from gcal_sheet_sync.ledger import now_iso
from gcal_sheet_sync.ledger import row_range
from gcal_sheet_sync.ledger import summarize_records
from gcal_sheet_sync.models import LEDGER_COLUMNS
from gcal_sheet_sync.models import CalendarSyncError
from gcal_sheet_sync.models import PendingInsert
from gcal_sheet_sync.models import PendingUpdate
from tests.conftest import CAL_A
from tests.conftest import CAL_B
from tests.conftest import make_record

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _Recorder:
    """MockTransport handler that records requests and replays queued responses."""

    def __init__(self, *responses: httpx.Response):
        self.requests: list[httpx.Request] = []
        self._responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._responses:
            return self._responses.pop(0)
        return httpx.Response(200, json={})

    def body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


def _run_with_ledger(recorder: _Recorder, action):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as http:
            ledger = SheetLedger("sheet-1", "sheets-token", http_client=http, backoff_seconds=0)
            return await action(ledger)

    return asyncio.run(go())


def _spreadsheet(*titles: str) -> httpx.Response:
    sheets = [{"properties": {"sheetId": i * 10, "title": t}} for i, t in enumerate(titles)]
    return httpx.Response(200, json={"properties": {"title": "Ledger"}, "sheets": sheets})


def _insert(primary_event_id: str = "A1") -> PendingInsert:
    return PendingInsert(CAL_A, primary_event_id, CAL_B, "c1", "Standup", "s", "e", "sig")


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def test_descending_row_ids():
    assert descending_row_ids([3, 7, 2]) == [7, 3, 2]
    assert descending_row_ids([5, 5, 2]) == [5, 2]


def test_build_delete_requests_bottom_up():
    requests = build_delete_requests([3, 7, 2], sheet_id=42)
    ranges = [r["deleteDimension"]["range"] for r in requests]
    assert [(r["startIndex"], r["endIndex"]) for r in ranges] == [(6, 7), (2, 3), (1, 2)]
    assert all(r["sheetId"] == 42 and r["dimension"] == "ROWS" for r in ranges)


def test_row_range():
    assert row_range(5) == f"{SHEET_NAME}!A5:K5"


def test_now_iso_format():
    stamp = now_iso()
    assert stamp.endswith("Z")
    assert len(stamp) == len("2026-01-01T00:00:00.000Z")


def test_summarize_records():
    a = make_record(2, "A1", "c1")
    a.last_updated = "2026-02-01T00:00:00.000Z"
    b = make_record(3, "A2", "c2")
    c = make_record(4, "B1", "c3", primary_calendar=CAL_B, secondary_calendar=CAL_A)

    groups = summarize_records([a, b, c])

    assert groups == [
        {
            "primary_calendar": CAL_A,
            "secondary_calendar": CAL_B,
            "count": 2,
            "last_updated": "2026-02-01T00:00:00.000Z",
        },
        {
            "primary_calendar": CAL_B,
            "secondary_calendar": CAL_A,
            "count": 1,
            "last_updated": "2026-01-01T00:00:00.000Z",
        },
    ]


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def test_load_all_assigns_sheet_row_ids():
    values = [
        list(LEDGER_COLUMNS),
        [CAL_A, "A1", CAL_B, "c1", "Standup", "s", "e", "sig", "t0", "t1", "t2"],
        ["", "", "", ""],  # blanked row
        [CAL_B, "B1", CAL_A, "c2"],  # short row
    ]
    recorder = _Recorder(httpx.Response(200, json={"values": values}))

    records = _run_with_ledger(recorder, lambda ledger: ledger.load_all())

    assert [(r.row_id, r.primary_event_id) for r in records] == [(2, "A1"), (4, "B1")]
    assert records[0].signature == "sig"
    assert records[0].created_at == "t0"
    assert records[1].signature == ""
    request = recorder.requests[0]
    assert request.method == "GET"
    assert request.headers["Authorization"] == "Bearer sheets-token"
    assert "/spreadsheets/sheet-1/values/" in str(request.url)


def test_load_all_header_only():
    recorder = _Recorder(httpx.Response(200, json={"values": [list(LEDGER_COLUMNS)]}))
    assert _run_with_ledger(recorder, lambda ledger: ledger.load_all()) == []


def test_load_all_empty_sheet():
    recorder = _Recorder(httpx.Response(200, json={"range": "synced_events!A1:K1"}))
    assert _run_with_ledger(recorder, lambda ledger: ledger.load_all()) == []


def test_load_all_error_raises():
    error = {"error": {"code": 403, "message": "The caller does not have permission"}}
    recorder = _Recorder(httpx.Response(403, json=error))
    with pytest.raises(GoogleAPIError) as excinfo:
        _run_with_ledger(recorder, lambda ledger: ledger.load_all())
    assert excinfo.value.status_code == 403
    assert excinfo.value.message == "The caller does not have permission"


def test_get_sheet_id():
    recorder = _Recorder(_spreadsheet("Other", SHEET_NAME))
    assert _run_with_ledger(recorder, lambda ledger: ledger.get_sheet_id()) == 10


def test_get_sheet_id_missing():
    recorder = _Recorder(_spreadsheet("Sheet1"))
    with pytest.raises(CalendarSyncError):
        _run_with_ledger(recorder, lambda ledger: ledger.get_sheet_id())


# ---------------------------------------------------------------------------
# Batched writes
# ---------------------------------------------------------------------------


def test_batch_insert_is_one_append():
    recorder = _Recorder()
    inserts = [_insert("A1"), _insert("A2")]

    _run_with_ledger(recorder, lambda ledger: ledger.batch_insert(inserts))

    assert len(recorder.requests) == 1
    request = recorder.requests[0]
    assert request.method == "POST"
    assert request.url.path.endswith(":append")
    assert request.url.params["valueInputOption"] == "RAW"
    assert request.url.params["insertDataOption"] == "INSERT_ROWS"
    rows = recorder.body()["values"]
    assert [row[1] for row in rows] == ["A1", "A2"]
    assert all(len(row) == len(LEDGER_COLUMNS) for row in rows)
    # created_at, last_updated and last_checked share one timestamp
    assert rows[0][8] == rows[0][9] == rows[0][10]


def test_batch_update_is_one_multi_range_call():
    recorder = _Recorder()
    updates = [
        PendingUpdate(5, CAL_A, "A1", CAL_B, "c1", "New", "s", "e", "sig2", "created-then"),
        PendingUpdate(9, CAL_A, "A2", CAL_B, "c2", "Other", "s", "e", "sig3", "created-too"),
    ]

    _run_with_ledger(recorder, lambda ledger: ledger.batch_update(updates))

    assert len(recorder.requests) == 1
    assert recorder.requests[0].url.path.endswith("/values:batchUpdate")
    body = recorder.body()
    assert body["valueInputOption"] == "RAW"
    assert [d["range"] for d in body["data"]] == [row_range(5), row_range(9)]
    row = body["data"][0]["values"][0]
    assert row[7] == "sig2"
    assert row[8] == "created-then"
    assert row[9] == row[10]


def test_batch_delete_sends_descending_requests():
    recorder = _Recorder()

    _run_with_ledger(recorder, lambda ledger: ledger.batch_delete([3, 7, 2], 42))

    assert len(recorder.requests) == 1
    assert recorder.requests[0].url.path == "/v4/spreadsheets/sheet-1:batchUpdate"
    starts = [r["deleteDimension"]["range"]["startIndex"] for r in recorder.body()["requests"]]
    assert starts == [6, 2, 1]


@pytest.mark.parametrize(
    "action",
    [
        lambda ledger: ledger.batch_insert([]),
        lambda ledger: ledger.batch_update([]),
        lambda ledger: ledger.batch_delete([], 0),
    ],
)
def test_empty_batches_make_no_requests(action):
    recorder = _Recorder()
    _run_with_ledger(recorder, action)
    assert recorder.requests == []


# ---------------------------------------------------------------------------
# init_schema
# ---------------------------------------------------------------------------


def test_init_schema_renames_default_sheet_and_writes_header():
    recorder = _Recorder(
        _spreadsheet("Sheet1"),
        httpx.Response(200, json={}),  # rename
        httpx.Response(200, json={"range": HEADER_RANGE}),  # no header yet
        httpx.Response(200, json={}),  # header write
    )

    _run_with_ledger(recorder, lambda ledger: ledger.init_schema())

    rename = json.loads(recorder.requests[1].content)["requests"][0]
    assert rename["updateSheetProperties"]["properties"] == {"sheetId": 0, "title": SHEET_NAME}
    header = recorder.requests[3]
    assert header.method == "PUT"
    assert json.loads(header.content)["values"] == [list(LEDGER_COLUMNS)]


def test_init_schema_adds_sheet_next_to_others():
    recorder = _Recorder(
        _spreadsheet("Sheet1", "Notes"),
        httpx.Response(200, json={}),
        httpx.Response(200, json={}),
        httpx.Response(200, json={}),
    )

    _run_with_ledger(recorder, lambda ledger: ledger.init_schema())

    request = json.loads(recorder.requests[1].content)["requests"][0]
    assert request == {"addSheet": {"properties": {"title": SHEET_NAME}}}


def test_init_schema_is_idempotent():
    recorder = _Recorder(
        _spreadsheet(SHEET_NAME),
        httpx.Response(200, json={"values": [list(LEDGER_COLUMNS)]}),
    )

    _run_with_ledger(recorder, lambda ledger: ledger.init_schema())

    assert [r.method for r in recorder.requests] == ["GET", "GET"]
