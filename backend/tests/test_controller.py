import asyncio
from typing import List, Optional

import numpy as np

from pathsense.agent.controller import (
    MODEL_UNAVAILABLE_ERROR,
    SPEECH_UNAVAILABLE_ERROR,
    DetectionCycleController,
)
from pathsense.models import BoundingBox, Detection, Frame


FRAME = Frame.from_array(np.full((48, 64, 3), 20, dtype=np.uint8))
PERSON = Detection(
    class_label="person",
    confidence=0.9,
    bbox=BoundingBox(x=22.0, y=0.0, width=20.0, height=40.0),
)


class _FakeClassifier:
    def __init__(self, detections: Optional[List[Detection]] = None, ready: bool = True) -> None:
        self.detections = detections or []
        self.ready = ready
        self.calls = 0
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    async def detect(self, frame: Frame) -> List[Detection]:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.detections)


class _FakeSpeech:
    def __init__(self) -> None:
        self.available = True
        self.is_speaking = False
        self.spoken: List[str] = []

    def speak(self, text: str) -> bool:
        self.spoken.append(text)
        return True


class _Clock:
    def __init__(self) -> None:
        self.now_ms = 0.0

    def __call__(self) -> float:
        return self.now_ms


def _controller(classifier: _FakeClassifier, speech: _FakeSpeech, clock: Optional[_Clock] = None,
                frame: Optional[Frame] = FRAME, period: float = 1.0) -> DetectionCycleController:
    return DetectionCycleController(
        classifier=classifier,
        speech=speech,
        frame_source=lambda: frame,
        period_seconds=period,
        clock=clock or _Clock(),
    )


def test_tick_publishes_and_speaks() -> None:
    classifier = _FakeClassifier([PERSON])
    speech = _FakeSpeech()
    controller = _controller(classifier, speech)

    text = asyncio.run(controller.tick())

    assert text is not None and text.startswith("Person center")
    assert controller.announcement == text
    assert speech.spoken == [text]


def test_tick_skipped_while_speaking() -> None:
    classifier = _FakeClassifier([PERSON])
    speech = _FakeSpeech()
    speech.is_speaking = True
    controller = _controller(classifier, speech)

    assert asyncio.run(controller.tick()) is None
    assert classifier.calls == 0
    assert controller.throttle.state.last_text == ""


def test_tick_skipped_without_frame() -> None:
    classifier = _FakeClassifier([PERSON])
    controller = _controller(classifier, _FakeSpeech(), frame=None)
    assert asyncio.run(controller.tick()) is None
    assert classifier.calls == 0


def test_classifier_failure_skips_only_that_tick() -> None:
    classifier = _FakeClassifier([PERSON])
    classifier.error = RuntimeError("backend unavailable")
    speech = _FakeSpeech()
    controller = _controller(classifier, speech)

    assert asyncio.run(controller.tick()) is None
    assert controller.last_error == "backend unavailable"
    assert speech.spoken == []

    classifier.error = None
    assert asyncio.run(controller.tick()) is not None


def test_throttled_repeat_is_not_spoken() -> None:
    clock = _Clock()
    speech = _FakeSpeech()
    controller = _controller(_FakeClassifier([PERSON]), speech, clock=clock)

    asyncio.run(controller.tick())
    clock.now_ms = 1000
    assert asyncio.run(controller.tick()) is None
    clock.now_ms = 4100
    assert asyncio.run(controller.tick()) is not None
    assert len(speech.spoken) == 2


def test_empty_dark_scene_announces_clear_path() -> None:
    speech = _FakeSpeech()
    controller = _controller(_FakeClassifier([]), speech)
    assert asyncio.run(controller.tick()) == "Clear path ahead"


def test_stop_clears_announcement_state() -> None:
    speech = _FakeSpeech()
    controller = _controller(_FakeClassifier([PERSON]), speech)
    first = asyncio.run(controller.tick())

    controller.stop()
    assert controller.announcement == ""
    assert controller.throttle.state.last_text == ""
    assert asyncio.run(controller.tick()) == first


def test_stop_discards_in_flight_tick() -> None:
    async def scenario(controller: DetectionCycleController, classifier: _FakeClassifier) -> Optional[str]:
        classifier.gate = asyncio.Event()
        pending = asyncio.create_task(controller.tick())
        await asyncio.sleep(0)
        controller.stop()
        classifier.gate.set()
        return await pending

    classifier = _FakeClassifier([PERSON])
    speech = _FakeSpeech()
    controller = _controller(classifier, speech)

    assert asyncio.run(scenario(controller, classifier)) is None
    assert classifier.calls == 1
    assert controller.announcement == ""
    assert controller.throttle.state.last_text == ""
    assert speech.spoken == []


def test_start_refused_without_capabilities() -> None:
    controller = _controller(_FakeClassifier(ready=False), _FakeSpeech())
    assert controller.start() is False
    assert controller.error == MODEL_UNAVAILABLE_ERROR
    assert controller.running is False

    speech = _FakeSpeech()
    speech.available = False
    controller = _controller(_FakeClassifier(), speech)
    assert controller.start() is False
    assert controller.error == SPEECH_UNAVAILABLE_ERROR


def test_loop_pauses_while_speaking_and_resumes() -> None:
    async def scenario() -> None:
        classifier = _FakeClassifier([PERSON])
        speech = _FakeSpeech()
        controller = _controller(classifier, speech, period=0.01)

        assert controller.start() is True
        await asyncio.sleep(0.05)
        assert controller.running
        assert classifier.calls > 0

        speech.is_speaking = True
        paused_at = classifier.calls
        await asyncio.sleep(0.05)
        assert classifier.calls == paused_at

        speech.is_speaking = False
        await asyncio.sleep(0.05)
        assert classifier.calls > paused_at

        controller.stop()
        await asyncio.sleep(0)
        assert controller.running is False

    asyncio.run(scenario())


def test_restart_cancels_previous_loop() -> None:
    async def scenario() -> None:
        controller = _controller(_FakeClassifier([PERSON]), _FakeSpeech(), period=0.01)
        controller.start()
        first = controller._task
        controller.start()
        await asyncio.sleep(0.02)
        assert first.cancelled()
        assert controller.running
        controller.stop()

    asyncio.run(scenario())


def test_loop_survives_failing_ticks() -> None:
    async def scenario() -> None:
        classifier = _FakeClassifier([PERSON])
        classifier.error = ValueError("bad frame")
        controller = _controller(classifier, _FakeSpeech(), period=0.01)
        controller.start()
        await asyncio.sleep(0.05)
        assert classifier.calls > 1
        assert controller.running
        controller.stop()

    asyncio.run(scenario())
