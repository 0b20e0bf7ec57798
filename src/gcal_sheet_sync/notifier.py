"""
Best-effort error alerts via the Telegram Bot API.
"""

import logging
from typing import Any

import httpx

from gcal_sheet_sync.models import SyncConfig
from gcal_sheet_sync.models import SyncOutput

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE_URL = "https://api.telegram.org"


class NullNotifier:
    """Used when no alerting credentials are configured."""

    async def notify(self, message: str) -> None:
        logger.debug("Alerting disabled; dropping notification")


class TelegramNotifier:
    """Sends Markdown messages to one Telegram chat. ``notify`` never raises."""

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self._http_client = http_client

    async def notify(self, message: str) -> None:
        url = f"{TELEGRAM_API_BASE_URL}/bot{self.bot_token}/sendMessage"
        payload: dict[str, Any] = {
            "chat_id": self.chat_id,
            "text": message,
            "parse_mode": "Markdown",
        }
        try:
            if self._http_client is not None:
                resp = await self._http_client.post(url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=10.0) as client:
                    resp = await client.post(url, json=payload)
        except Exception as e:
            # The bot token is part of the URL, so only the error type is logged.
            logger.error(f"Failed to send Telegram notification: {type(e).__name__}")
            return

        if resp.status_code < 200 or resp.status_code >= 300:
            logger.error(f"Telegram API error: {resp.status_code} {resp.reason_phrase}")


def make_notifier(config: SyncConfig):
    if config.alerting_enabled:
        return TelegramNotifier(config.telegram_bot_token, config.telegram_chat_id)
    return NullNotifier()


def format_error_summary(output: SyncOutput) -> str:
    a, b, o = output.a_to_b, output.b_to_a, output.orphans
    lines = [
        "*Calendar Sync Completed with Errors*",
        "",
        f"A→B: {a.created} created, {a.updated} updated, {a.errors} errors",
        f"B→A: {b.created} created, {b.updated} updated, {b.errors} errors",
        f"Orphans: {o.deleted} deleted, {o.errors} errors",
    ]
    if output.ledger_errors:
        lines.append(f"Ledger writes: {output.ledger_errors} failed")
    lines += ["", f"Total errors: *{output.total_errors}*"]
    return "\n".join(lines)


def format_failure(error: BaseException) -> str:
    return f"*Calendar Sync Failed*\n\nError: `{type(error).__name__}: {error}`"
