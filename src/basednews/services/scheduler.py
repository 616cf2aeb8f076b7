"""Hourly background ingestion."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Callable

import schedule

logger = logging.getLogger(__name__)

POLL_INTERVAL = 1.0


class SchedulerHandle:
    """Runs ``ingest`` once after a startup delay, then at the top of every hour.

    Each handle owns its own :class:`schedule.Scheduler`, so several handles
    (for instance one per test) never share jobs.
    """

    def __init__(
        self,
        ingest: Callable[[], Any],
        *,
        startup_delay: float = 5.0,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        self._ingest = ingest
        self._startup_delay = startup_delay
        self._poll_interval = poll_interval
        self._scheduler = schedule.Scheduler()
        self.job = self._scheduler.every().hour.at(":00").do(self._run_safely)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def next_run(self) -> datetime | None:
        """Local time of the next hourly run."""

        return self.job.next_run

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_pending(self) -> None:
        self._scheduler.run_pending()

    def start(self) -> "SchedulerHandle":
        """Start the background thread; a stopped handle can be started again."""

        if self._thread is not None:
            return self
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._loop, args=(self._stop,), name="basednews-scheduler", daemon=True
        )
        self._thread.start()
        logger.info(
            "News scheduler started; first run in %.0fs, then hourly at :00", self._startup_delay
        )
        return self

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        logger.info("News scheduler stopped")

    def _loop(self, stop: threading.Event) -> None:
        if stop.wait(self._startup_delay):
            return
        self._run_safely()
        while not stop.wait(self._poll_interval):
            self._scheduler.run_pending()

    def _run_safely(self) -> None:
        logger.info("Running scheduled news fetch")
        try:
            self._ingest()
        except Exception:  # noqa: BLE001 - the timer must keep firing
            logger.exception("Scheduled news fetch failed")


def start_scheduler(ingest: Callable[[], Any], *, startup_delay: float = 5.0) -> SchedulerHandle:
    """Start background ingestion and return the handle used to stop it."""

    return SchedulerHandle(ingest, startup_delay=startup_delay).start()
