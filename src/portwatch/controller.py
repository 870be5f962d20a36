from __future__ import annotations

import threading
from typing import Optional

from .utils import logger
from .view_model import ProcessViewModel

IDLE_POLL_INTERVAL = 1.0


class RefreshScheduler:
    """Background loop that keeps the snapshot fresh.

    While auto-refresh is off the loop only polls the setting every
    ``idle_poll_interval`` seconds, so switching it back on takes effect
    without waiting out a full refresh interval. Stopping is cooperative: a
    scan that already started runs to completion and the loop exits at the
    next wait.
    """

    def __init__(
        self,
        view_model: ProcessViewModel,
        idle_poll_interval: float = IDLE_POLL_INTERVAL,
    ):
        self.view_model = view_model
        self._idle_poll_interval = idle_poll_interval
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.is_running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run_loop, name="portwatch-refresh", daemon=True
            )
            self._thread.start()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop_event.set()
        with self._lock:
            thread = self._thread
            self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)

    def refresh_async(self) -> threading.Thread:
        """Manual refresh on a short-lived worker; coalesced with any scan in flight."""

        def worker() -> None:
            if self.view_model.refresh_now():
                self.view_model.publish_badge()

        thread = threading.Thread(target=worker, name="portwatch-manual-refresh", daemon=True)
        thread.start()
        return thread

    def tick(self) -> float:
        """Run one loop iteration and return how long to wait before the next."""

        settings = self.view_model.settings
        if not settings.auto_refresh_enabled:
            return self._idle_poll_interval
        if self._stop_event.is_set():
            return 0.0
        self.view_model.refresh_now()
        self.view_model.publish_badge()
        return settings.effective_refresh_interval

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                delay = self.tick()
            except Exception:
                logger.exception("refresh tick failed")
                delay = self._idle_poll_interval
            self._stop_event.wait(timeout=delay)


__all__ = ["IDLE_POLL_INTERVAL", "RefreshScheduler"]
