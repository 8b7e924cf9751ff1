"""Preview sink: latest tracker preview bitmap, shown from the main thread."""

from __future__ import annotations

import logging
import threading
import time

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class VideoWidget:
    """Holds the newest preview bitmap.

    ``update_image`` is called from the tracker thread at camera rate; the
    owner polls ``take_fresh``/``show`` at its own rate, so stale frames are
    dropped rather than queued.
    """

    def __init__(self, title: str = "pointtrack preview"):
        self.title = title
        self._lock = threading.Lock()
        self._texture: np.ndarray | None = None
        self._fresh = False
        self._window_open = False

    def update_image(self, bitmap: np.ndarray) -> None:
        img = np.array(bitmap, copy=True)
        with self._lock:
            self._texture = img
            self._fresh = True

    def take_fresh(self) -> np.ndarray | None:
        with self._lock:
            if not self._fresh:
                return None
            self._fresh = False
            return self._texture

    def show(self, wait_ms: int = 1) -> int:
        """Draw the newest bitmap if any; return the pressed key or -1."""
        img = self.take_fresh()
        if img is not None:
            cv2.imshow(self.title, img)
            self._window_open = True
        if not self._window_open:
            time.sleep(max(1, int(wait_ms)) / 1000.0)
            return -1
        key = cv2.waitKey(max(1, int(wait_ms)))
        return -1 if key < 0 else key & 0xFF

    def close(self) -> None:
        if not self._window_open:
            return
        self._window_open = False
        try:
            cv2.destroyWindow(self.title)
        except cv2.error:
            logger.debug("[PREVIEW] destroyWindow failed", exc_info=True)
