"""Worker thread base with cooperative interruption."""

from __future__ import annotations

import logging
import os
import sys
import threading

logger = logging.getLogger(__name__)

# Nice value requested for worker threads (lower = higher priority).
HIGH_PRIORITY_NICE = -5


def raise_current_thread_priority(nice: int = HIGH_PRIORITY_NICE) -> bool:
    """Best-effort priority bump for the calling thread.

    Linux applies setpriority(PRIO_PROCESS, tid) to a single thread. Other
    platforms and unprivileged users keep the default priority.
    """
    if not sys.platform.startswith("linux") or not hasattr(os, "setpriority"):
        return False
    tid = threading.get_native_id()
    try:
        os.setpriority(os.PRIO_PROCESS, tid, nice)
    except OSError as exc:
        logger.debug("[WORKER] priority unchanged for tid=%s: %s", tid, exc)
        return False
    return True


class Worker:
    """A dedicated thread running ``run()`` until interruption is requested.

    Subclasses loop on ``is_interruption_requested()`` once per cycle and
    use ``wait_interruptible()`` for idle waits.
    """

    thread_name: str = "worker"

    def __init__(self):
        self._interrupt = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self.is_running():
            return
        self._interrupt.clear()
        self._thread = threading.Thread(
            target=self._thread_main, name=self.thread_name, daemon=True
        )
        self._thread.start()

    def _thread_main(self) -> None:
        raise_current_thread_priority()
        self.run()

    def run(self) -> None:
        raise NotImplementedError

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def request_interruption(self) -> None:
        self._interrupt.set()

    def is_interruption_requested(self) -> bool:
        return self._interrupt.is_set()

    def wait_interruptible(self, timeout_s: float) -> bool:
        """Sleep up to timeout_s; return True if interruption was requested."""
        if timeout_s <= 0.0:
            return self._interrupt.is_set()
        return self._interrupt.wait(timeout_s)

    def wait(self, timeout_s: float | None = None) -> bool:
        """Join the thread; return True once it has exited."""
        if self._thread is None:
            return True
        self._thread.join(timeout_s)
        return not self._thread.is_alive()

    def stop(self, timeout_s: float | None = None) -> bool:
        self.request_interruption()
        return self.wait(timeout_s)
