"""
TOP FLOW - Config
Process-wide ayarlar: startup'ta bir kez env'den okunur, sonra degismez.
"""

import os
from dataclasses import dataclass
from typing import Optional, Tuple

# =========================================================
# DEFAULTS
# =========================================================
WATCHLIST: Tuple[str, ...] = ("AAPL", "MSFT", "NVDA", "META", "AMZN", "AMD", "GOOGL", "TSLA")

DEFAULT_INTERVAL_MIN = 30
DEFAULT_EXCHANGE = "NASDAQ"
DEFAULT_HTTP_TIMEOUT = 12
DEFAULT_QUOTE_URL = "https://api.twelvedata.com/quote"

SINK_DISCORD = "discord"
SINK_TELEGRAM = "telegram"
SINKS = (SINK_DISCORD, SINK_TELEGRAM)


class ConfigError(RuntimeError):
    pass


# =========================================================
# ENV HELPERS
# =========================================================
def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name, default) or "").strip()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)).strip())
    except Exception:
        return default


@dataclass(frozen=True)
class AppConfig:
    api_key: str
    sink: str = SINK_DISCORD
    webhook_url: Optional[str] = None
    telegram_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    watchlist: Tuple[str, ...] = WATCHLIST
    exchange: str = DEFAULT_EXCHANGE
    interval_minutes: int = DEFAULT_INTERVAL_MIN
    http_timeout: int = DEFAULT_HTTP_TIMEOUT
    quote_url: str = DEFAULT_QUOTE_URL

    @property
    def interval_seconds(self) -> int:
        return self.interval_minutes * 60

    @property
    def destination(self) -> str:
        if self.sink == SINK_TELEGRAM:
            return f"telegram:{self.telegram_chat_id}"
        return "discord webhook"


def load_config() -> AppConfig:
    """
    Env'den AppConfig kurar.

    API key ve secilen sink'in hedefi yoksa ConfigError atar; loop hic baslamaz.
    Sayisal degerler bozuksa default'a duser.
    """
    api_key = _env_str("TWELVE_DATA_API_KEY")
    if not api_key:
        raise ConfigError("Twelve Data API key not set (TWELVE_DATA_API_KEY)")

    sink = _env_str("ALERT_SINK", SINK_DISCORD).lower() or SINK_DISCORD
    if sink not in SINKS:
        raise ConfigError(f"Unknown ALERT_SINK: {sink} (expected one of {', '.join(SINKS)})")

    webhook_url = _env_str("DISCORD_WEBHOOK_URL") or None
    telegram_token = _env_str("BOT_TOKEN") or None
    telegram_chat_id = _env_str("TOP_FLOW_CHAT_ID") or None

    if sink == SINK_DISCORD and not webhook_url:
        raise ConfigError("Discord webhook URL not set (DISCORD_WEBHOOK_URL)")
    if sink == SINK_TELEGRAM and not (telegram_token and telegram_chat_id):
        raise ConfigError("Telegram destination not set (BOT_TOKEN / TOP_FLOW_CHAT_ID)")

    interval = _env_int("TOP_FLOW_INTERVAL_MIN", DEFAULT_INTERVAL_MIN)
    if interval <= 0:
        interval = DEFAULT_INTERVAL_MIN

    timeout = _env_int("TOP_FLOW_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT)
    if timeout <= 0:
        timeout = DEFAULT_HTTP_TIMEOUT

    return AppConfig(
        api_key=api_key,
        sink=sink,
        webhook_url=webhook_url,
        telegram_token=telegram_token,
        telegram_chat_id=telegram_chat_id,
        exchange=_env_str("TOP_FLOW_EXCHANGE", DEFAULT_EXCHANGE) or DEFAULT_EXCHANGE,
        interval_minutes=interval,
        http_timeout=timeout,
        quote_url=_env_str("TOP_FLOW_QUOTE_URL", DEFAULT_QUOTE_URL) or DEFAULT_QUOTE_URL,
    )
