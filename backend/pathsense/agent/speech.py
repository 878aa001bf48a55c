"""
Speech channel - hand-off point to the client's text-to-speech engine.

The service does not play audio itself. Accepted utterances are queued for
the client, which fetches them, speaks them and reports when playback ends.
While an utterance is in flight the channel reports `is_speaking`, which
the detection cycle uses to skip ticks.
"""

import time
import logging
from typing import Callable, Optional, Protocol


logger = logging.getLogger(__name__)


class SpeechSink(Protocol):
    """Capability consumed by the detection cycle."""

    @property
    def available(self) -> bool: ...

    @property
    def is_speaking(self) -> bool: ...

    def speak(self, text: str) -> bool: ...


class SpeechChannel:
    """
    Client-backed speech engine state.

    Guards (independent of the announcement throttle):
    - min gap between utterances
    - same text not repeated inside the repeat window
    - speaking flag auto-expires after `timeout_seconds` if the client
      never reports the end of playback
    """

    def __init__(
        self,
        min_gap_seconds: float = 2.5,
        repeat_window_seconds: float = 5.0,
        timeout_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.min_gap_seconds = min_gap_seconds
        self.repeat_window_seconds = repeat_window_seconds
        self.timeout_seconds = timeout_seconds
        self._clock = clock

        self.available = True
        self._speaking_since: Optional[float] = None
        self._last_text = ""
        self._last_spoken_at: Optional[float] = None
        self._pending: Optional[str] = None

    @property
    def is_speaking(self) -> bool:
        if self._speaking_since is None:
            return False
        if self._clock() - self._speaking_since > self.timeout_seconds:
            logger.info("Speech timeout - forcing end")
            self._speaking_since = None
            return False
        return True

    def speak(self, text: str) -> bool:
        """Queue `text` for the client. Returns False if the utterance was refused."""
        if not self.available:
            logger.debug("Speech not available")
            return False

        now = self._clock()
        if self._last_spoken_at is not None:
            since_last = now - self._last_spoken_at
            if since_last < self.min_gap_seconds:
                logger.debug("Skipping speech - too soon")
                return False
            if text == self._last_text and since_last < self.repeat_window_seconds:
                logger.debug("Skipping speech - same text")
                return False

        logger.info(f"Speaking: {text}")
        self._pending = text
        self._last_text = text
        self._last_spoken_at = now
        self._speaking_since = now
        return True

    def take_pending(self) -> Optional[str]:
        """Pop the utterance waiting for the client, if any."""
        text, self._pending = self._pending, None
        return text

    def started(self) -> None:
        """Client reported playback start."""
        self._speaking_since = self._clock()

    def finished(self) -> None:
        """Client reported playback end (or a playback error)."""
        self._speaking_since = None

    def cancel(self) -> None:
        """Drop any queued utterance and forget the last spoken text."""
        self._pending = None
        self._speaking_since = None
        self._last_text = ""
