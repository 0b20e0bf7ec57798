"""
CalendarSynchronizer: thin orchestrator that delegates to sync submodules.
"""

import asyncio
import logging
from contextlib import AsyncExitStack

from gcal_sheet_sync.gcal_client import GoogleCalendarClient
from gcal_sheet_sync.ledger import SheetLedger
from gcal_sheet_sync.models import SyncConfig
from gcal_sheet_sync.models import SyncOutput
from gcal_sheet_sync.models import SyncStats
from gcal_sheet_sync.notifier import make_notifier
from gcal_sheet_sync.sync.clear import perform_clear
from gcal_sheet_sync.sync.two_way import run_two_way


class CalendarSynchronizer:
    """Main synchronization engine."""

    def __init__(self, config: SyncConfig, calendar_client=None, ledger=None, notifier=None):
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.stats = SyncStats()
        self.calendar_client = calendar_client
        self.ledger = ledger
        self.notifier = notifier

    def run(self) -> SyncOutput | SyncStats:
        """Execute the synchronization process."""
        return asyncio.run(self.run_async())

    async def run_async(self) -> SyncOutput | SyncStats:
        self.config.validate()

        async with AsyncExitStack() as stack:
            calendar_client = self.calendar_client
            if calendar_client is None:
                self.logger.info("Connecting to Google Calendar...")
                calendar_client = await stack.enter_async_context(
                    GoogleCalendarClient(self.config.calendar_token)
                )
            ledger = self.ledger
            if ledger is None:
                ledger = await stack.enter_async_context(
                    SheetLedger(self.config.spreadsheet_id, self.config.sheets_token)
                )
            notifier = self.notifier or make_notifier(self.config)

            if self.config.clear:
                await perform_clear(
                    self.config,
                    self.stats,
                    self.logger,
                    calendar_client,
                    ledger,
                    target=self.config.clear_target,
                )
                return self.stats

            return await run_two_way(self.config, self.logger, calendar_client, ledger, notifier)
