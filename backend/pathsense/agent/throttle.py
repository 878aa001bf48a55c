"""
Announcement Throttle - anti-spam gate for spoken output.

Rules per candidate:
- Object / wall message: emit if the text changed, or if the same text
  has not been emitted for more than `object_refresh_ms` (heartbeat for a
  hazard that is still there).
- "Clear path ahead": emit only if more than `clear_refresh_ms` passed
  since the last emission AND the text differs from the last one.

Suppression leaves the state untouched.
"""

import logging
from typing import Optional
from dataclasses import dataclass

from pathsense.models import PriorityClass


logger = logging.getLogger(__name__)


OBJECT_REFRESH_MS = 4000.0
CLEAR_REFRESH_MS = 6000.0


@dataclass
class AnnouncementState:
    """Last accepted announcement. last_emit_ms is None until the first emission."""
    last_text: str = ""
    last_emit_ms: Optional[float] = None

    def elapsed_ms(self, now_ms: float) -> float:
        if self.last_emit_ms is None:
            return float("inf")
        return now_ms - self.last_emit_ms


class AnnouncementThrottle:
    """Sole writer of AnnouncementState."""

    def __init__(
        self,
        object_refresh_ms: float = OBJECT_REFRESH_MS,
        clear_refresh_ms: float = CLEAR_REFRESH_MS,
    ):
        self.object_refresh_ms = object_refresh_ms
        self.clear_refresh_ms = clear_refresh_ms
        self.state = AnnouncementState()

    def reset(self) -> None:
        """Forget the last announcement (detection stopped)."""
        self.state = AnnouncementState()

    def should_emit(self, candidate: str, priority: PriorityClass, now_ms: float) -> bool:
        """Pure check against the current state."""
        elapsed = self.state.elapsed_ms(now_ms)
        changed = candidate != self.state.last_text

        if priority == PriorityClass.CLEAR:
            return elapsed > self.clear_refresh_ms and changed
        return changed or elapsed > self.object_refresh_ms

    def offer(self, candidate: str, priority: PriorityClass, now_ms: float) -> Optional[str]:
        """
        Consult the throttle once per tick.

        Returns the candidate if it should be published now, else None.
        """
        if not self.should_emit(candidate, priority, now_ms):
            logger.debug(f"Suppressed: '{candidate}'")
            return None

        self.state = AnnouncementState(last_text=candidate, last_emit_ms=now_ms)
        logger.info(f"Announce: '{candidate}' ({priority.value})")
        return candidate
