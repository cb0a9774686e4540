import re
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional
from urllib.parse import urlencode

import requests

from config import DEFAULT_EXCHANGE, DEFAULT_HTTP_TIMEOUT, DEFAULT_QUOTE_URL
from quote_extract import extract

logger = logging.getLogger("TOP_FLOW")

# ==========================
# Quote fields (Twelve Data /quote)
# ==========================
# Keys are searched with their quotes: "change" must not hit "percent_change",
# "volume" must not hit "average_volume".
FIELD_PREV_CLOSE = '"previous_close"'
FIELD_CHANGE = '"change"'
FIELD_VOLUME = '"volume"'
FIELD_PCT_CHANGE = '"percent_change"'
FIELD_AVG_VOLUME = '"average_volume"'

_ERROR_MARKER_RE = re.compile(r'"status"\s*:\s*"error"')

LABEL_BULL = "TOP BULL FLOW"
LABEL_BEAR = "TOP BEAR FLOW"


# ==========================
# Models
# ==========================
@dataclass(frozen=True)
class QuoteSample:
    symbol: str
    previous_close: float = 0.0
    change: float = 0.0
    volume: float = 0.0
    percent_change: float = 0.0
    average_volume: float = 0.0

    @property
    def usable(self) -> bool:
        return self.average_volume > 0

    @property
    def price(self) -> float:
        # API has no "current price": previous close + today's change
        return self.previous_close + self.change

    @property
    def relative_volume(self) -> float:
        return self.volume / self.average_volume

    @property
    def flow_score(self) -> float:
        return self.percent_change * self.relative_volume


@dataclass(frozen=True)
class CycleResult:
    ticker: str
    price: float
    percent_change: float
    volume: float
    relative_volume: float
    flow_score: float

    @property
    def direction(self) -> str:
        return "bullish" if self.flow_score >= 0 else "bearish"

    @property
    def label(self) -> str:
        return LABEL_BULL if self.flow_score >= 0 else LABEL_BEAR

    @classmethod
    def from_sample(cls, sample: QuoteSample) -> "CycleResult":
        return cls(
            ticker=sample.symbol,
            price=sample.price,
            percent_change=sample.percent_change,
            volume=sample.volume,
            relative_volume=sample.relative_volume,
            flow_score=sample.flow_score,
        )


# ==========================
# Fetch adapter
# ==========================
def build_quote_url(
    symbol: str,
    api_key: str,
    exchange: str = DEFAULT_EXCHANGE,
    base_url: str = DEFAULT_QUOTE_URL,
) -> str:
    query = urlencode({"symbol": symbol, "exchange": exchange, "apikey": api_key})
    return f"{base_url}?{query}"


def fetch_quote(url: str, timeout: int = DEFAULT_HTTP_TIMEOUT) -> Optional[str]:
    try:
        r = requests.get(url, timeout=timeout)
        r.raise_for_status()
        return r.text or None
    except requests.RequestException as e:
        logger.warning("FLOW fetch error: %s", e)
        return None


def is_error_response(text: str) -> bool:
    return bool(_ERROR_MARKER_RE.search(text or ""))


def sample_from_text(symbol: str, text: str) -> QuoteSample:
    return QuoteSample(
        symbol=symbol,
        previous_close=extract(text, FIELD_PREV_CLOSE),
        change=extract(text, FIELD_CHANGE),
        volume=extract(text, FIELD_VOLUME),
        percent_change=extract(text, FIELD_PCT_CHANGE),
        average_volume=extract(text, FIELD_AVG_VOLUME),
    )


# ==========================
# Ranking
# ==========================
def is_stronger(candidate: CycleResult, best: Optional[CycleResult]) -> bool:
    # strict ">" : on equal magnitude the earlier symbol keeps the spot
    if best is None:
        return True
    return abs(candidate.flow_score) > abs(best.flow_score)


# ==========================
# Message formatting
# ==========================
def format_symbol_line(sample: QuoteSample) -> str:
    return (
        f"{sample.symbol} | Price: {sample.price:.2f} | Volume: {sample.volume:.0f} | "
        f"RVol {sample.relative_volume:.4f} | Change: {sample.percent_change:.4f}% | "
        f"DirectionalFlow: {sample.flow_score:.4f}"
    )


def format_summary(result: CycleResult) -> str:
    return (
        f"===== {result.label} =====\n"
        f"Ticker: {result.ticker}\n"
        f"Price: {result.price:.2f}\n"
        f"Change: {result.percent_change:.4f}%\n"
        f"Volume: {result.volume:.0f}\n"
        f"Relative Volume: {result.relative_volume:.4f}\n"
        f"Directional Flow: {result.flow_score:.4f}"
    )


def format_alert(result: CycleResult) -> str:
    return (
        f"{result.label}\n"
        f"Ticker: {result.ticker}\n"
        f"Price: {result.price:.2f}\n"
        f"Change: {result.percent_change:.4f}%\n"
        f"Volume: {result.volume:.0f}\n"
        f"RVol: {result.relative_volume:.4f}\n"
        f"Directional Flow: {result.flow_score:.4f}"
    )


# ==========================
# Cycle
# ==========================
def _fetch_sample(symbol: str, fetch: Callable[[str], Optional[str]], url: str) -> Optional[QuoteSample]:
    try:
        text = fetch(url)
    except Exception as e:
        logger.warning("FLOW %s: fetch failed: %s", symbol, e)
        return None

    if not text:
        logger.debug("FLOW %s: empty response", symbol)
        return None

    if is_error_response(text):
        logger.debug("FLOW %s: upstream error status", symbol)
        return None

    sample = sample_from_text(symbol, text)
    if not sample.usable:
        logger.debug("FLOW %s: average_volume <= 0, skipped", symbol)
        return None

    return sample


def run_cycle(
    watchlist: Iterable[str],
    fetch: Callable[[str], Optional[str]],
    deliver: Callable[[str], Any],
    url_for: Callable[[str], str] = lambda symbol: symbol,
) -> Optional[CycleResult]:
    """
    One pass over the watchlist: fetch each symbol in order, rank by |flow score|,
    send a single alert for the strongest one.

    Every per-symbol problem (fetch failure, error-flagged response, average
    volume <= 0) only skips that symbol. Returns the winner, or None when no
    symbol was usable (no alert in that case).
    """
    best: Optional[CycleResult] = None

    logger.info("Fetching tickers...")

    for symbol in watchlist:
        sample = _fetch_sample(symbol, fetch, url_for(symbol))
        if sample is None:
            continue

        logger.info("%s", format_symbol_line(sample))

        candidate = CycleResult.from_sample(sample)
        if is_stronger(candidate, best):
            best = candidate

    if best is None:
        logger.info("FLOW: no usable symbols, no alert")
        return None

    for line in format_summary(best).splitlines():
        logger.info("%s", line)

    msg = format_alert(best)
    try:
        ok = deliver(msg)
        if ok is False:
            logger.error("FLOW send failed: %s", best.ticker)
    except Exception as e:
        logger.error("FLOW send error: %s", e)

    return best
