import asyncio
import logging
from typing import Callable

import requests
from telegram import Bot
from telegram.error import TelegramError

from config import AppConfig, SINK_TELEGRAM, DEFAULT_HTTP_TIMEOUT

logger = logging.getLogger("TOP_FLOW_NOTIFY")

# Message body ceiling (after escaping); HEADROOM keeps room below it.
MESSAGE_SAFE_LIMIT = 1000
HEADROOM = 5

_ESCAPES = {
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    '"': '\\"',
    "\\": "\\\\",
}


# ==========================
# Envelope helpers
# ==========================
def _escape_char(ch: str) -> str:
    if ch in _ESCAPES:
        return _ESCAPES[ch]
    if ord(ch) < 0x20:
        return f"\\u{ord(ch):04x}"
    return ch


def escape_message(message: str, limit: int = MESSAGE_SAFE_LIMIT) -> str:
    """
    Turns a multi-line message into one line that can sit inside a JSON string.

    Newlines become the two characters backslash + n. Output is cut so it stays
    under limit - HEADROOM; an escape sequence is never split.
    """
    cap = limit - HEADROOM
    out = []
    size = 0
    for ch in message or "":
        piece = _escape_char(ch)
        if size + len(piece) > cap:
            break
        out.append(piece)
        size += len(piece)
    return "".join(out)


def truncate_message(message: str, limit: int = MESSAGE_SAFE_LIMIT) -> str:
    return (message or "")[: limit - HEADROOM]


def build_discord_payload(message: str) -> str:
    return '{"content":"' + escape_message(message) + '"}'


# ==========================
# Senders
# ==========================
def send_discord_alert(webhook_url: str, message: str, timeout: int = DEFAULT_HTTP_TIMEOUT) -> bool:
    payload = build_discord_payload(message)
    try:
        r = requests.post(
            webhook_url,
            data=payload.encode("utf-8"),
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )
        r.raise_for_status()
        return True
    except requests.RequestException as e:
        logger.error("Discord send error: %s", e)
        return False


async def _telegram_send(token: str, chat_id: str, text: str) -> None:
    async with Bot(token) as bot:
        await bot.send_message(chat_id=chat_id, text=text)


def send_telegram_alert(token: str, chat_id: str, message: str) -> bool:
    try:
        asyncio.run(_telegram_send(token, chat_id, truncate_message(message)))
        return True
    except TelegramError as e:
        logger.error("Telegram send error: %s", e)
        return False


def make_deliver(cfg: AppConfig) -> Callable[[str], bool]:
    if cfg.sink == SINK_TELEGRAM:
        def _deliver_telegram(message: str) -> bool:
            return send_telegram_alert(cfg.telegram_token, cfg.telegram_chat_id, message)
        return _deliver_telegram

    def _deliver_discord(message: str) -> bool:
        return send_discord_alert(cfg.webhook_url, message, timeout=cfg.http_timeout)
    return _deliver_discord
