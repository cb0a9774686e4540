import os
import signal
import logging
import threading
from functools import partial
from typing import Any, Callable, Optional

from config import AppConfig, ConfigError, load_config
from notify import make_deliver
from top_flow import build_quote_url, fetch_quote, run_cycle

# -----------------------------
# Config
# -----------------------------
BOT_VERSION = os.getenv("BOT_VERSION", "v1.0").strip() or "v1.0"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logger = logging.getLogger("TOP_FLOW_MAIN")


def setup_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


# -----------------------------
# Scheduler
# -----------------------------
class CycleScheduler:
    """Runs job() every interval_sec until stop(). A running job is never interrupted."""

    def __init__(self, interval_sec: float, job: Callable[[], Any]):
        self.interval_sec = interval_sec
        self.job = job
        self._stop = threading.Event()
        self.cycles = 0

    def stop(self) -> None:
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def run_forever(self, max_cycles: Optional[int] = None) -> None:
        while not self._stop.is_set():
            try:
                self.job()
            except Exception as e:
                logger.exception("Cycle error: %s", e)
            self.cycles += 1

            if max_cycles is not None and self.cycles >= max_cycles:
                break

            # wait() returns True once stop() is called
            if self._stop.wait(self.interval_sec):
                break


def build_job(cfg: AppConfig) -> Callable[[], Any]:
    fetch = partial(fetch_quote, timeout=cfg.http_timeout)
    url_for = partial(build_quote_url, api_key=cfg.api_key, exchange=cfg.exchange, base_url=cfg.quote_url)
    deliver = make_deliver(cfg)

    def _job() -> Any:
        return run_cycle(cfg.watchlist, fetch, deliver, url_for=url_for)

    return _job


def _install_signal_handlers(scheduler: CycleScheduler) -> None:
    def _handle(signum, frame):
        logger.info("Signal %s received, stopping after current cycle", signum)
        scheduler.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            signal.signal(sig, _handle)
        except (ValueError, OSError):
            # not main thread / unsupported platform
            pass


# -----------------------------
# Main
# -----------------------------
def main() -> int:
    setup_logging()

    try:
        cfg = load_config()
    except ConfigError as e:
        logger.error("%s", e)
        return 1

    scheduler = CycleScheduler(cfg.interval_seconds, build_job(cfg))
    _install_signal_handlers(scheduler)

    logger.info(
        "Top Flow Bot starting... version=%s sink=%s interval=%dmin watchlist=%s",
        BOT_VERSION,
        cfg.destination,
        cfg.interval_minutes,
        ",".join(cfg.watchlist),
    )
    scheduler.run_forever()
    logger.info("Top Flow Bot stopped after %d cycles", scheduler.cycles)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
