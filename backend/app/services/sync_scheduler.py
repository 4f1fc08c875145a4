"""
Sync Scheduler - throttle for member ledger reconciliation

A reconciliation pass is expensive, so list requests only trigger one when
the last pass is older than the configured interval (or the caller forces
it). State lives on the scheduler instance, which the app keeps on
``app.state``; it is not persisted, so a restart simply allows one extra
pass.
"""
import time
from typing import Callable, Optional, TypeVar

from app.core.config import settings

T = TypeVar("T")


class SyncScheduler:
    def __init__(
        self,
        interval_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.interval_seconds = (
            settings.MEMBER_SYNC_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        )
        self.clock = clock
        self.last_run: Optional[float] = None

    def is_due(self, force: bool = False) -> bool:
        if force or self.last_run is None:
            return True
        return self.clock() - self.last_run >= self.interval_seconds

    def mark_synced(self) -> None:
        self.last_run = self.clock()

    def reset(self) -> None:
        self.last_run = None

    def run_if_due(self, fn: Callable[[], T], force: bool = False) -> Optional[T]:
        """
        Run ``fn`` when a pass is due and restart the window.

        The window restarts even when ``fn`` raises, so a failing pass is
        not retried on every request.

        Returns:
            fn's result, or None when throttled
        """
        if not self.is_due(force):
            return None
        self.mark_synced()
        return fn()
