from pathsense.agent.throttle import AnnouncementThrottle
from pathsense.models import PriorityClass


PERSON_TEXT = "Person center about 1.5 meters away"
CLEAR_TEXT = "Clear path ahead"


def test_same_object_message_is_refreshed_after_heartbeat() -> None:
    throttle = AnnouncementThrottle()
    assert throttle.offer(PERSON_TEXT, PriorityClass.PERSON, 0) == PERSON_TEXT
    assert throttle.offer(PERSON_TEXT, PriorityClass.PERSON, 1000) is None
    assert throttle.offer(PERSON_TEXT, PriorityClass.PERSON, 4000) is None
    assert throttle.offer(PERSON_TEXT, PriorityClass.PERSON, 4100) == PERSON_TEXT


def test_changed_object_message_emits_immediately() -> None:
    throttle = AnnouncementThrottle()
    throttle.offer(PERSON_TEXT, PriorityClass.PERSON, 0)
    other = "car left about 5 meters away"
    assert throttle.offer(other, PriorityClass.VEHICLE, 200) == other
    assert throttle.state.last_text == other
    assert throttle.state.last_emit_ms == 200


def test_clear_path_is_not_repeated() -> None:
    throttle = AnnouncementThrottle()
    emitted = []
    for now in range(0, 7001, 500):
        if throttle.offer(CLEAR_TEXT, PriorityClass.CLEAR, now):
            emitted.append(now)
    assert emitted == [0]


def test_clear_path_waits_for_slow_heartbeat_after_hazard() -> None:
    throttle = AnnouncementThrottle()
    throttle.offer(PERSON_TEXT, PriorityClass.PERSON, 0)
    assert throttle.offer(CLEAR_TEXT, PriorityClass.CLEAR, 3000) is None
    assert throttle.offer(CLEAR_TEXT, PriorityClass.CLEAR, 6000) is None
    assert throttle.offer(CLEAR_TEXT, PriorityClass.CLEAR, 6001) == CLEAR_TEXT


def test_suppression_leaves_state_untouched() -> None:
    throttle = AnnouncementThrottle()
    throttle.offer(PERSON_TEXT, PriorityClass.PERSON, 0)
    before = throttle.state
    throttle.offer(PERSON_TEXT, PriorityClass.PERSON, 500)
    throttle.offer(CLEAR_TEXT, PriorityClass.CLEAR, 1000)
    assert throttle.state == before


def test_reset_allows_same_message_again() -> None:
    throttle = AnnouncementThrottle()
    throttle.offer(PERSON_TEXT, PriorityClass.PERSON, 0)
    throttle.reset()
    assert throttle.state.last_text == ""
    assert throttle.offer(PERSON_TEXT, PriorityClass.PERSON, 100) == PERSON_TEXT


def test_custom_refresh_windows() -> None:
    throttle = AnnouncementThrottle(object_refresh_ms=1000, clear_refresh_ms=2000)
    throttle.offer(PERSON_TEXT, PriorityClass.PERSON, 0)
    assert throttle.offer(PERSON_TEXT, PriorityClass.PERSON, 1001) == PERSON_TEXT
    assert throttle.offer(CLEAR_TEXT, PriorityClass.CLEAR, 3002) == CLEAR_TEXT
