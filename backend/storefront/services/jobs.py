# Overview: Background job runner; periodic daemon threads inside the Flask app context.

"""
Background jobs

Each job runs on its own daemon thread with an app context pushed, on a
fixed interval. Overlap protection belongs to the job itself (JobGuard);
the runner only schedules.

Jobs:
- clover-refresh: refresh_enabled_products every CLOVER_SYNC_INTERVAL_SECONDS
- abandoned-carts: process_abandoned_carts every ABANDONED_CART_INTERVAL_SECONDS,
  first run ABANDONED_CART_STARTUP_DELAY_SECONDS after start
- hosted-checkouts: expire_stale_checkouts every HOSTED_CHECKOUT_SWEEP_INTERVAL_SECONDS
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from ..extensions import db


logger = logging.getLogger(__name__)


class PeriodicJob:
    def __init__(self, app, name: str, func: Callable[[], object], interval: float, initial_delay: float = 0.0):
        self.app = app
        self.name = name
        self.func = func
        self.interval = interval
        self.initial_delay = initial_delay
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def _run_once(self) -> None:
        with self.app.app_context():
            try:
                self.func()
            except Exception:
                logger.exception("[Jobs] %s failed", self.name)
            finally:
                db.session.remove()

    def _loop(self) -> None:
        if self._stop.wait(self.initial_delay):
            return
        while not self._stop.is_set():
            self._run_once()
            if self._stop.wait(self.interval):
                return

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._loop, name=f"job-{self.name}", daemon=True)
        self._thread.start()
        logger.info("[Jobs] Started %s (every %ss)", self.name, self.interval)

    def stop(self) -> None:
        self._stop.set()


def start_background_jobs(app) -> list[PeriodicJob]:
    from .abandoned_cart_service import process_abandoned_carts
    from .clover_sync_service import refresh_enabled_products
    from .order_service import expire_stale_checkouts

    config = app.config
    jobs = [
        PeriodicJob(app, "clover-refresh", refresh_enabled_products,
                    interval=config["CLOVER_SYNC_INTERVAL_SECONDS"]),
        PeriodicJob(app, "abandoned-carts", process_abandoned_carts,
                    interval=config["ABANDONED_CART_INTERVAL_SECONDS"],
                    initial_delay=config["ABANDONED_CART_STARTUP_DELAY_SECONDS"]),
        PeriodicJob(app, "hosted-checkouts", expire_stale_checkouts,
                    interval=config["HOSTED_CHECKOUT_SWEEP_INTERVAL_SECONDS"]),
    ]
    for job in jobs:
        job.start()
    return jobs
