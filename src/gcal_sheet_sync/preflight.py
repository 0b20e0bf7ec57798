"""
Preflight checks run before sync to catch common misconfigurations early.
"""

import asyncio
import logging

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from gcal_sheet_sync.gcal_client import GoogleCalendarClient
from gcal_sheet_sync.google_api import GoogleAPIError
from gcal_sheet_sync.ledger import SHEET_NAME
from gcal_sheet_sync.ledger import SheetLedger
from gcal_sheet_sync.models import SyncConfig

logger = logging.getLogger(__name__)


def _hint_for(error: GoogleAPIError, what: str) -> str:
    if error.status_code == 0:
        return "Network unreachable — check your connection"
    if error.status_code == 401:
        return "Access token rejected or expired — refresh the OAuth token"
    if error.status_code == 403:
        return f"Token lacks access to this {what} — check sharing and OAuth scopes"
    if error.status_code == 404:
        return f"No such {what} — check the configured ID"
    return error.message


async def collect_issues(
    cfg: SyncConfig, calendar_client, ledger
) -> list[tuple[str, str, str]]:
    """Return (label, detail, hint) for every problem found."""
    issues: list[tuple[str, str, str]] = []

    # 1 & 2. Both calendars reachable with the calendar token
    for calendar_id, label in (
        (cfg.calendar_a_id, "Calendar A"),
        (cfg.calendar_b_id, "Calendar B"),
    ):
        try:
            await calendar_client.get_calendar(calendar_id)
        except GoogleAPIError as e:
            logger.error("Cannot reach %s (%s): %s", label, calendar_id, e)
            issues.append((label, f"{calendar_id}: {e.message}", _hint_for(e, "calendar")))

    # 3. Spreadsheet reachable and the ledger sheet exists
    try:
        spreadsheet = await ledger.get_spreadsheet()
    except GoogleAPIError as e:
        logger.error("Cannot reach spreadsheet %s: %s", cfg.spreadsheet_id, e)
        issues.append(
            (
                "Ledger spreadsheet",
                f"{cfg.spreadsheet_id}: {e.message}",
                _hint_for(e, "spreadsheet"),
            )
        )
    else:
        titles = [(s.get("properties") or {}).get("title") for s in spreadsheet.get("sheets") or []]
        if SHEET_NAME not in titles:
            issues.append(
                (
                    "Ledger sheet",
                    f"Sheet '{SHEET_NAME}' not found",
                    "Run: gcal-sheet-sync init",
                )
            )

    return issues


async def _run_checks(cfg: SyncConfig) -> list[tuple[str, str, str]]:
    async with GoogleCalendarClient(cfg.calendar_token) as calendar_client, SheetLedger(
        cfg.spreadsheet_id, cfg.sheets_token
    ) as ledger:
        return await collect_issues(cfg, calendar_client, ledger)


def run_preflight_checks(cfg: SyncConfig, console: Console) -> bool:
    """Return True if sync may proceed; print issues and return False otherwise."""
    issues: list[tuple[str, str, str]] = []
    if not cfg.calendar_token:
        issues.append(("Calendar token", "not set", "Set GCAL_OAUTH_TOKEN or calendar_token"))
    if not cfg.sheets_token:
        issues.append(("Sheets token", "not set", "Set GSHEET_OAUTH_TOKEN or sheets_token"))
    if issues:
        _print_issues(issues, console)
        return False

    issues = asyncio.run(_run_checks(cfg))
    if issues:
        _print_issues(issues, console)
        return False

    return True


def _print_issues(issues: list[tuple[str, str, str]], console: Console) -> None:
    body = Text()
    for i, (label, detail, hint) in enumerate(issues):
        if i:
            body.append("\n")
        body.append(f"  ✗  {label}: ", style="bold red")
        body.append(detail, style="bold red")
        body.append(f"\n       → {hint}", style="yellow")

    console.print(Panel(body, title="[bold red]Preflight checks failed[/bold red]"))
