"""
Command-line interface for Google Calendar ↔ Sheets sync.
"""

import asyncio
import logging
import os
from collections.abc import Mapping
from configparser import ConfigParser
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Annotated
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from gcal_sheet_sync.google_api import GoogleAPIError
from gcal_sheet_sync.ledger import SHEET_NAME
from gcal_sheet_sync.ledger import SheetLedger
from gcal_sheet_sync.ledger import summarize_records
from gcal_sheet_sync.models import DEFAULT_CONFIG
from gcal_sheet_sync.models import CalendarSyncError
from gcal_sheet_sync.models import ConfigError
from gcal_sheet_sync.models import SyncConfig
from gcal_sheet_sync.models import SyncOutput
from gcal_sheet_sync.sync import CalendarSynchronizer

# ---------------------------------------------------------------------------
# Typer app
# ---------------------------------------------------------------------------

app = typer.Typer(
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Bidirectional Google Calendar sync with a Google Sheets ledger.",
)

console = Console()


# ---------------------------------------------------------------------------
# Global state shared across subcommands
# ---------------------------------------------------------------------------


@dataclass
class _State:
    config_path: Path = field(default_factory=lambda: DEFAULT_CONFIG)
    verbose: bool = False


state = _State()


@app.callback()
def _global(
    config: Annotated[
        Path,
        typer.Option("--config", "-c", help=f"Config file path (default: {DEFAULT_CONFIG})"),
    ] = DEFAULT_CONFIG,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose debug output"),
    ] = False,
) -> None:
    state.config_path = config
    state.verbose = verbose
    _setup_logging(verbose)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

# SyncConfig field → environment variable
ENV_VARS = {
    "calendar_token": "GCAL_OAUTH_TOKEN",
    "sheets_token": "GSHEET_OAUTH_TOKEN",
    "spreadsheet_id": "SPREADSHEET_ID",
    "calendar_a_id": "CALENDAR_A_ID",
    "calendar_b_id": "CALENDAR_B_ID",
    "calendar_a_prefix": "CALENDAR_A_PREFIX",
    "calendar_b_prefix": "CALENDAR_B_PREFIX",
    "max_events": "MAX_EVENTS",
    "days_ahead": "DAYS_AHEAD",
    "telegram_bot_token": "TELEGRAM_BOT_TOKEN",
    "telegram_chat_id": "TELEGRAM_CHAT_ID",
}

_INT_SETTINGS = ("max_events", "days_ahead", "batch_size")
_FLOAT_SETTINGS = ("batch_delay",)
_FILE_SETTINGS = tuple(ENV_VARS) + ("batch_size", "batch_delay")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False, console=console)],
    )


def _load_config_file(config_path: Path) -> dict[str, str]:
    if not config_path.exists():
        return {}
    parser = ConfigParser()
    parser.read(config_path)
    if "calendar-sync" not in parser:
        return {}
    return dict(parser["calendar-sync"])


def resolve_settings(
    file_values: Mapping[str, str],
    environ: Mapping[str, str],
    overrides: Mapping[str, Any],
) -> dict[str, Any]:
    """
    Merge settings with precedence CLI option > environment > config file.

    Empty values never override.  Numeric settings are converted here so a
    typo surfaces as a ConfigError rather than deep inside a pass.
    """
    settings: dict[str, Any] = {}
    for name in _FILE_SETTINGS:
        if file_values.get(name):
            settings[name] = file_values[name]
    for name, var in ENV_VARS.items():
        if environ.get(var):
            settings[name] = environ[var]
    for name, value in overrides.items():
        if value is not None and value != "":
            settings[name] = value

    for name in _INT_SETTINGS + _FLOAT_SETTINGS:
        if name not in settings:
            continue
        convert = int if name in _INT_SETTINGS else float
        try:
            settings[name] = convert(settings[name])
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid value for {name}: {settings[name]!r}") from None
    return settings


def _build_config(
    overrides: Mapping[str, Any] | None = None,
    require_calendars: bool = True,
    **flags,
) -> SyncConfig:
    try:
        settings = resolve_settings(
            _load_config_file(state.config_path), os.environ, overrides or {}
        )
    except ConfigError as e:
        console.print(f"[bold red]Error:[/] {e}")
        raise typer.Exit(1) from None

    required = ["spreadsheet_id"]
    if require_calendars:
        required += ["calendar_a_id", "calendar_b_id"]
    missing = [name for name in required if not settings.get(name)]
    if missing:
        console.print(
            f"[bold red]Error:[/] Missing {', '.join(missing)}. Provide via CLI options, "
            f"environment ([cyan]{'[/], [cyan]'.join(ENV_VARS[m] for m in missing)}[/]) "
            "or the config file."
        )
        raise typer.Exit(1)

    settings.setdefault("calendar_a_id", "")
    settings.setdefault("calendar_b_id", "")
    return SyncConfig(verbose=state.verbose, **settings, **flags)


# ---------------------------------------------------------------------------
# Sync runner
# ---------------------------------------------------------------------------


def _results_table(result) -> Table:
    results = Table.grid(padding=(0, 2))
    results.add_column(style="bold")
    results.add_column(justify="right")

    if isinstance(result, SyncOutput):
        a, b = result.a_to_b, result.b_to_a
        results.add_row("Created", f"{a.created} / {b.created}")
        results.add_row("Updated", f"{a.updated} / {b.updated}")
        results.add_row("Recovered", f"{a.recovered} / {b.recovered}")
        results.add_row("Unchanged", f"{a.unchanged} / {b.unchanged}")
        results.add_row("Deleted", str(result.orphans.deleted))
        errors = result.total_errors
    else:
        results.add_row("Deleted", str(result.deleted))
        errors = result.errors

    error_val = Text(str(errors))
    if errors == 0:
        error_val.append(" ✓", style="green")
    else:
        error_val.stylize("bold red")
    results.add_row("Errors", error_val)
    return results


def _run_sync(cfg: SyncConfig) -> None:
    """Core sync runner: display panel, confirm, run, show results."""
    from gcal_sheet_sync.preflight import run_preflight_checks

    try:
        cfg.validate()
    except ConfigError as e:
        console.print(f"[bold red]Error:[/] {e}")
        raise typer.Exit(1) from None

    if not run_preflight_checks(cfg, console):
        raise typer.Exit(1)

    # -- Info panel ----------------------------------------------------------
    if cfg.clear:
        op_line = Text("CLEAR (remove all synced events, no resync)", style="bold red")
        target_label = {
            "both": "[cyan]both calendars[/]",
            "a": "[cyan]calendar A only[/] [dim](copies created by B→A sync)[/dim]",
            "b": "[cyan]calendar B only[/] [dim](copies created by A→B sync)[/dim]",
        }[cfg.clear_target]
    else:
        op_line = Text("SYNC", style="bold green")
        target_label = "[cyan]↔ Bidirectional[/]"

    info = Text()
    info.append("  Calendar A: ", style="bold")
    info.append(f"{cfg.calendar_a_id} ")
    info.append(cfg.calendar_a_prefix, style="dim")
    info.append("\n  Calendar B: ", style="bold")
    info.append(f"{cfg.calendar_b_id} ")
    info.append(cfg.calendar_b_prefix, style="dim")
    info.append("\n  Ledger:     ", style="bold")
    info.append(f"{cfg.spreadsheet_id}\n")
    info.append(f"              sheet {SHEET_NAME}\n", style="dim")
    info.append("  Target:     " if cfg.clear else "  Direction:  ", style="bold")
    info.append_text(Text.from_markup(target_label))
    info.append("\n  Operation:  ")
    info.append_text(op_line)
    if not cfg.clear:
        info.append(f"\n  Window:     {cfg.days_ahead} days ahead, max {cfg.max_events} events")
    if cfg.alerting_enabled:
        info.append("\n  Alerts:     ")
        info.append("Telegram", style="yellow")
    if cfg.dry_run:
        info.append("\n  Mode:       ")
        info.append("DRY RUN", style="bold magenta")

    console.print(Panel(info, title="[bold]Calendar Sheet Sync[/bold]"))

    # -- Confirmation --------------------------------------------------------
    if not cfg.yes and not cfg.dry_run:
        typer.confirm("Proceed?", abort=True)

    # -- Run -----------------------------------------------------------------
    try:
        result = CalendarSynchronizer(cfg).run()
    except CalendarSyncError as e:
        console.print(f"[bold red]Sync failed:[/] {e}")
        raise typer.Exit(1) from None
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted by user[/]")
        raise typer.Exit(130) from None
    except Exception as e:
        console.print_exception()
        console.print(f"[bold red]Unexpected error:[/] {e}")
        raise typer.Exit(1) from e

    # -- Results table -------------------------------------------------------
    title = "[bold]Results[/bold]" if cfg.clear else "[bold]Results (A→B / B→A)[/bold]"
    console.print(Panel(_results_table(result), title=title, expand=False))

    errors = result.total_errors if isinstance(result, SyncOutput) else result.errors
    if errors:
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Subcommands: sync / clear share the same options
# ---------------------------------------------------------------------------

_CAL_A_OPT = Annotated[
    str | None,
    typer.Option("--calendar-a", "-a", help="Calendar A ID (overrides config)"),
]
_CAL_B_OPT = Annotated[
    str | None,
    typer.Option("--calendar-b", "-b", help="Calendar B ID (overrides config)"),
]
_SHEET_OPT = Annotated[
    str | None,
    typer.Option("--spreadsheet", "-s", help="Ledger spreadsheet ID (overrides config)"),
]
_DRY_RUN = Annotated[bool, typer.Option("--dry-run", "-n", help="Preview changes without applying")]
_YES = Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")]


@app.command()
def sync(
    calendar_a: _CAL_A_OPT = None,
    calendar_b: _CAL_B_OPT = None,
    spreadsheet: _SHEET_OPT = None,
    prefix_a: Annotated[
        str | None, typer.Option("--prefix-a", help="Title prefix for copies of A events")
    ] = None,
    prefix_b: Annotated[
        str | None, typer.Option("--prefix-b", help="Title prefix for copies of B events")
    ] = None,
    days_ahead: Annotated[
        int | None, typer.Option("--days-ahead", help="Sync window length in days")
    ] = None,
    max_events: Annotated[
        int | None, typer.Option("--max-events", help="Maximum events fetched per calendar")
    ] = None,
    dry_run: _DRY_RUN = False,
    yes: _YES = False,
) -> None:
    """Run one bidirectional reconciliation pass."""
    _run_sync(
        _build_config(
            {
                "calendar_a_id": calendar_a,
                "calendar_b_id": calendar_b,
                "spreadsheet_id": spreadsheet,
                "calendar_a_prefix": prefix_a,
                "calendar_b_prefix": prefix_b,
                "days_ahead": days_ahead,
                "max_events": max_events,
            },
            dry_run=dry_run,
            yes=yes,
        )
    )


@app.command()
def clear(
    calendar_a: _CAL_A_OPT = None,
    calendar_b: _CAL_B_OPT = None,
    spreadsheet: _SHEET_OPT = None,
    only_a: Annotated[
        bool,
        typer.Option("--a", help="Remove synced copies from calendar A only (B→A copies)"),
    ] = False,
    only_b: Annotated[
        bool,
        typer.Option("--b", help="Remove synced copies from calendar B only (A→B copies)"),
    ] = False,
    dry_run: _DRY_RUN = False,
    yes: _YES = False,
) -> None:
    """Remove synced copies and their ledger rows without re-syncing.

    By default clears copies from [bold]both[/bold] calendars.
    Use [cyan]--a[/] or [cyan]--b[/] to restrict to one calendar.
    """
    if only_a and only_b:
        raise typer.BadParameter("--a and --b are mutually exclusive")
    target = "a" if only_a else "b" if only_b else "both"
    _run_sync(
        _build_config(
            {
                "calendar_a_id": calendar_a,
                "calendar_b_id": calendar_b,
                "spreadsheet_id": spreadsheet,
            },
            dry_run=dry_run,
            yes=yes,
            clear=True,
            clear_target=target,
        )
    )


# ---------------------------------------------------------------------------
# Subcommand: init
# ---------------------------------------------------------------------------


async def _init_ledger(cfg: SyncConfig) -> int:
    async with SheetLedger(cfg.spreadsheet_id, cfg.sheets_token) as ledger:
        await ledger.init_schema()
        return len(await ledger.load_all())


@app.command()
def init(spreadsheet: _SHEET_OPT = None) -> None:
    """Create the ledger sheet and header row (idempotent)."""
    cfg = _build_config({"spreadsheet_id": spreadsheet}, require_calendars=False)
    try:
        count = asyncio.run(_init_ledger(cfg))
    except GoogleAPIError as e:
        console.print(f"[bold red]Init failed:[/] {e}")
        raise typer.Exit(1) from None

    console.print(
        f"[green]✓[/] Ledger sheet [cyan]{SHEET_NAME}[/] ready in {cfg.spreadsheet_id} "
        f"— {count} tracked events"
    )


# ---------------------------------------------------------------------------
# Subcommand: status
# ---------------------------------------------------------------------------


async def _load_ledger(cfg: SyncConfig):
    async with SheetLedger(cfg.spreadsheet_id, cfg.sheets_token) as ledger:
        return await ledger.load_all()


@app.command()
def status() -> None:
    """Show sync configuration and ledger summary."""
    config_exists = state.config_path.exists()

    cfg_info = Text()
    cfg_info.append("  Config:   ", style="bold")
    cfg_info.append(str(state.config_path) + " ")
    cfg_info.append(
        "✓" if config_exists else "(not found)", style="green" if config_exists else "red"
    )

    cfg = _build_config(require_calendars=False)
    cfg_info.append("\n  Ledger:   ", style="bold")
    cfg_info.append(f"{cfg.spreadsheet_id} ")
    cfg_info.append(f"({SHEET_NAME})", style="dim")
    if cfg.calendar_a_id:
        cfg_info.append("\n  A:        ", style="bold")
        cfg_info.append(f"{cfg.calendar_a_id} ")
        cfg_info.append(cfg.calendar_a_prefix, style="dim")
    if cfg.calendar_b_id:
        cfg_info.append("\n  B:        ", style="bold")
        cfg_info.append(f"{cfg.calendar_b_id} ")
        cfg_info.append(cfg.calendar_b_prefix, style="dim")

    console.print(Panel(cfg_info, title="[bold]Calendar Sheet Sync — Status[/bold]"))

    try:
        records = asyncio.run(_load_ledger(cfg))
    except GoogleAPIError as e:
        console.print(f"[bold red]Cannot read ledger:[/] {e}")
        raise typer.Exit(1) from None

    if not records:
        console.print(
            "[yellow]Ledger is empty — run[/] [cyan]gcal-sheet-sync sync[/] "
            "[yellow]to populate it.[/]"
        )
        return

    def _label(calendar_id: str) -> str:
        if calendar_id == cfg.calendar_a_id:
            return "A"
        if calendar_id == cfg.calendar_b_id:
            return "B"
        return calendar_id[:24] + "…" if len(calendar_id) > 24 else calendar_id

    table = Table(show_header=True, header_style="bold cyan", box=None, padding=(0, 2))
    table.add_column("Direction")
    table.add_column("Tracked", justify="right")
    table.add_column("Last updated")

    for group in summarize_records(records):
        direction = f"{_label(group['primary_calendar'])} → {_label(group['secondary_calendar'])}"
        table.add_row(direction, str(group["count"]), group["last_updated"] or "—")

    console.print(Panel(table, title=f"[bold]{len(records)} tracked events[/bold]", expand=False))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    app()
