"""Latest-frame buffer fed by camera uploads."""

import time
import logging
from typing import Callable, Optional

from pathsense.models import Frame


logger = logging.getLogger(__name__)


class FrameBuffer:
    """Holds only the most recent frame; older frames are replaced."""

    def __init__(self, max_age_seconds: float = 3.0, clock: Callable[[], float] = time.monotonic):
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._frame: Optional[Frame] = None
        self._received_at = 0.0

    def put(self, frame: Frame) -> None:
        self._frame = frame
        self._received_at = self._clock()

    def latest(self) -> Optional[Frame]:
        """Most recent frame, or None if there is none or it is stale."""
        if self._frame is None:
            return None

        age = self._clock() - self._received_at
        if age > self.max_age_seconds:
            logger.debug(f"Latest frame is stale ({age:.1f}s old)")
            return None
        return self._frame

    def clear(self) -> None:
        self._frame = None
