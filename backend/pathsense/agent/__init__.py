"""Agent module - announcement throttling, speech hand-off and the tick loop."""

from pathsense.agent.throttle import AnnouncementState, AnnouncementThrottle
from pathsense.agent.speech import SpeechChannel
from pathsense.agent.frames import FrameBuffer
from pathsense.agent.controller import (
    DetectionCycleController,
    build_controller,
    get_controller,
    get_frame_buffer,
    get_speech_channel,
)

__all__ = [
    "AnnouncementState",
    "AnnouncementThrottle",
    "SpeechChannel",
    "FrameBuffer",
    "DetectionCycleController",
    "build_controller",
    "get_controller",
    "get_frame_buffer",
    "get_speech_channel",
]
