"""Tests for the scheduler and process entry point."""
import logging
import threading

import main
from config import AppConfig
from main import CycleScheduler, build_job


class TestCycleScheduler:
    def test_runs_until_max_cycles(self):
        calls = []
        s = CycleScheduler(0, lambda: calls.append(1))
        s.run_forever(max_cycles=3)
        assert len(calls) == 3
        assert s.cycles == 3

    def test_stop_between_cycles(self):
        calls = []
        s = CycleScheduler(3600, lambda: None)

        def job():
            calls.append(1)
            s.stop()

        s.job = job
        s.run_forever()

        assert calls == [1]
        assert s.stopped

    def test_stop_interrupts_wait(self):
        ran = threading.Event()
        s = CycleScheduler(3600, ran.set)
        t = threading.Thread(target=s.run_forever)
        t.start()
        assert ran.wait(timeout=5)
        s.stop()
        t.join(timeout=5)
        assert not t.is_alive()
        assert s.cycles == 1

    def test_job_exception_does_not_stop_loop(self, caplog):
        calls = []

        def job():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")

        s = CycleScheduler(0, job)
        with caplog.at_level(logging.ERROR, logger="TOP_FLOW_MAIN"):
            s.run_forever(max_cycles=2)

        assert len(calls) == 2
        assert "boom" in caplog.text


class TestBuildJob:
    def test_wires_config_into_cycle(self, monkeypatch):
        seen = {}

        def fake_run_cycle(watchlist, fetch, deliver, url_for):
            seen["watchlist"] = watchlist
            seen["url"] = url_for("AAPL")
            seen["timeout"] = fetch.keywords["timeout"]
            seen["deliver"] = deliver
            return None

        monkeypatch.setattr(main, "run_cycle", fake_run_cycle)

        cfg = AppConfig(
            api_key="secret",
            webhook_url="https://discord.test/hook",
            http_timeout=4,
            quote_url="https://api.example.com/quote",
        )
        build_job(cfg)()

        assert seen["watchlist"] == cfg.watchlist
        assert seen["url"] == "https://api.example.com/quote?symbol=AAPL&exchange=NASDAQ&apikey=secret"
        assert seen["timeout"] == 4
        assert callable(seen["deliver"])


class TestMain:
    def test_missing_config_exits_non_zero(self, monkeypatch):
        monkeypatch.delenv("TWELVE_DATA_API_KEY", raising=False)
        monkeypatch.delenv("DISCORD_WEBHOOK_URL", raising=False)

        def no_cycles(self, max_cycles=None):
            raise AssertionError("loop must not start")

        monkeypatch.setattr(CycleScheduler, "run_forever", no_cycles)
        assert main.main() == 1

    def test_starts_loop_with_config(self, monkeypatch):
        monkeypatch.setenv("TWELVE_DATA_API_KEY", "k")
        monkeypatch.setenv("DISCORD_WEBHOOK_URL", "https://discord.test/hook")
        monkeypatch.setenv("TOP_FLOW_INTERVAL_MIN", "2")
        monkeypatch.setattr(main, "_install_signal_handlers", lambda scheduler: None)

        started = {}

        def one_pass(self, max_cycles=None):
            started["interval"] = self.interval_sec

        monkeypatch.setattr(CycleScheduler, "run_forever", one_pass)
        assert main.main() == 0
        assert started["interval"] == 120
