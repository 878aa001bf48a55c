"""
Detection Cycle Controller - the periodic tick loop.

Idle -> Running -> Idle. Each tick:
1. Skip entirely while speech is playing (no classifier call, no state change)
2. Run the classifier once on the latest frame; failures skip the tick only
3. Prioritize -> throttle -> hand the accepted announcement to speech

Ticks run one at a time on the event loop: the next tick is scheduled only
after the previous one finished, so AnnouncementState never sees two
writers. stop() bumps the run generation; an in-flight tick from an older
generation discards its result instead of committing it.
"""

import time
import asyncio
import logging
from typing import Callable, Optional

from pathsense.config import get_settings
from pathsense.models import Frame
from pathsense.decision_engine import ObstaclePrioritizer
from pathsense.perception.detector import Classifier, get_classifier
from pathsense.perception.surface import SurfaceAnalyzer
from pathsense.agent.frames import FrameBuffer
from pathsense.agent.speech import SpeechChannel, SpeechSink
from pathsense.agent.throttle import AnnouncementThrottle


logger = logging.getLogger(__name__)


MODEL_UNAVAILABLE_ERROR = "Failed to load detection model"
SPEECH_UNAVAILABLE_ERROR = "Speech synthesis not supported"


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class DetectionCycleController:
    """
    Owns the tick loop, the throttle and the published announcement.

    Published interface:
    - announcement: last accepted announcement ("" when none / stopped)
    - ready: classifier is loaded
    - start() / stop()
    """

    def __init__(
        self,
        classifier: Classifier,
        speech: SpeechSink,
        frame_source: Callable[[], Optional[Frame]],
        prioritizer: Optional[ObstaclePrioritizer] = None,
        throttle: Optional[AnnouncementThrottle] = None,
        period_seconds: float = 1.0,
        clock: Callable[[], float] = monotonic_ms,
    ):
        self.classifier = classifier
        self.speech = speech
        self.frame_source = frame_source
        self.prioritizer = prioritizer or ObstaclePrioritizer()
        self.throttle = throttle or AnnouncementThrottle()
        self.period_seconds = period_seconds
        self._clock = clock

        self.announcement = ""
        self.error: Optional[str] = None
        self.last_error: Optional[str] = None

        self._task: Optional[asyncio.Task] = None
        self._generation = 0

    @property
    def ready(self) -> bool:
        return self.classifier.ready

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """
        Begin ticking. Must be called with a running event loop.

        Restarting cancels the previous loop first. Returns False (and sets
        `error`) when the classifier or speech capability is missing.
        """
        if not self.classifier.ready:
            self.error = MODEL_UNAVAILABLE_ERROR
            logger.error(f"Cannot start detection: {self.error}")
            return False
        if not self.speech.available:
            self.error = SPEECH_UNAVAILABLE_ERROR
            logger.error(f"Cannot start detection: {self.error}")
            return False

        self.error = None
        self._cancel_loop()
        self._task = asyncio.get_running_loop().create_task(self._run(self._generation))
        logger.info(f"Detection loop started (period {self.period_seconds:.2f}s)")
        return True

    def stop(self) -> None:
        """Cancel the loop and clear announcement state. Safe to call anytime."""
        was_running = self.running
        self._cancel_loop()
        self.throttle.reset()
        self.announcement = ""
        if was_running:
            logger.info("Detection loop stopped")

    def _cancel_loop(self) -> None:
        self._generation += 1
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self, generation: int) -> None:
        loop = asyncio.get_running_loop()
        while generation == self._generation:
            started = loop.time()
            try:
                await self.tick()
            except Exception as e:
                # One bad frame must not end the loop
                self.last_error = str(e)
                logger.exception(f"Tick failed: {e}")
            elapsed = loop.time() - started
            await asyncio.sleep(max(0.0, self.period_seconds - elapsed))

    async def tick(self) -> Optional[str]:
        """
        Run one detection cycle.

        Returns the announcement emitted by this tick, or None.
        """
        if self.speech.is_speaking:
            logger.debug("Speech in progress, skipping tick")
            return None

        frame = self.frame_source()
        if frame is None:
            logger.debug("No fresh frame, skipping tick")
            return None

        generation = self._generation

        try:
            detections = await self.classifier.detect(frame)
        except Exception as e:
            self.last_error = str(e)
            logger.error(f"Detection error: {e}")
            return None

        if generation != self._generation:
            logger.debug("Detection cancelled, discarding tick result")
            return None

        finding = self.prioritizer.prioritize(detections, frame.width, frame)
        text = self.throttle.offer(finding.text, finding.priority, self._clock())
        if text is None:
            return None

        self.announcement = text
        self.speech.speak(text)
        return text


def build_controller(
    classifier: Classifier,
    speech: SpeechSink,
    frame_source: Callable[[], Optional[Frame]],
) -> DetectionCycleController:
    """Controller wired with tunables from settings."""
    settings = get_settings()

    analyzer = SurfaceAnalyzer(
        edge_threshold=settings.surface_edge_threshold,
        max_edge_density=settings.surface_max_edge_density,
        min_brightness=settings.surface_min_brightness,
    )
    prioritizer = ObstaclePrioritizer(
        surface_analyzer=analyzer,
        min_confidence=settings.min_detection_confidence,
        very_close_m=settings.very_close_distance_m,
        vfov_deg=settings.camera_vfov_deg,
    )
    throttle = AnnouncementThrottle(
        object_refresh_ms=settings.object_refresh_seconds * 1000,
        clear_refresh_ms=settings.clear_refresh_seconds * 1000,
    )
    return DetectionCycleController(
        classifier=classifier,
        speech=speech,
        frame_source=frame_source,
        prioritizer=prioritizer,
        throttle=throttle,
        period_seconds=settings.tick_period_seconds,
    )


# Singletons
_speech: Optional[SpeechChannel] = None
_frames: Optional[FrameBuffer] = None
_controller: Optional[DetectionCycleController] = None


def get_speech_channel() -> SpeechChannel:
    """Get the singleton speech channel."""
    global _speech
    if _speech is None:
        settings = get_settings()
        _speech = SpeechChannel(
            min_gap_seconds=settings.speech_min_gap_seconds,
            repeat_window_seconds=settings.speech_repeat_window_seconds,
            timeout_seconds=settings.speech_timeout_seconds,
        )
    return _speech


def get_frame_buffer() -> FrameBuffer:
    """Get the singleton frame buffer."""
    global _frames
    if _frames is None:
        _frames = FrameBuffer(max_age_seconds=get_settings().frame_max_age_seconds)
    return _frames


def get_controller() -> DetectionCycleController:
    """Get the singleton detection cycle controller."""
    global _controller
    if _controller is None:
        frames = get_frame_buffer()
        _controller = build_controller(get_classifier(), get_speech_channel(), frames.latest)
    return _controller
