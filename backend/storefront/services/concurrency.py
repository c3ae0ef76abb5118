# Overview: Concurrency helpers; overlap guards for background jobs.

from __future__ import annotations

import threading


class JobGuard:
    """
    Skip-if-running flag for a background job.

    Owned by the job; try_acquire() never blocks, so an overlapping
    trigger returns immediately and the caller reports a zero result.

        guard = JobGuard("clover-refresh")
        if not guard.try_acquire():
            return SKIPPED
        try:
            ...
        finally:
            guard.release()
    """

    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    @property
    def running(self) -> bool:
        return self._lock.locked()
