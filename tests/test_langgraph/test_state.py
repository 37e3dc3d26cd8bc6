# tests/test_langgraph/test_state.py
from core.exceptions import ProviderError
from core.langgraph.state import create_initial_state, fatal_error_update


def test_initial_state_defaults_to_a_single_segment() -> None:
    state = create_initial_state(story_text="text")

    assert state["segments"] == ["text"]
    assert state["current_segment_index"] == 0
    assert state["open_tail"] is False
    assert state["has_fatal_error"] is False
    assert state["fragments"] == []


def test_initial_state_for_streaming() -> None:
    state = create_initial_state(story_text="one", segments=["one", "two"], open_tail=True)

    assert state["story_text"] == "one"
    assert state["segments"] == ["one", "two"]
    assert state["open_tail"] is True


def test_fatal_error_update_records_exception() -> None:
    error = ProviderError("down")

    update = fatal_error_update("follow_up", error)

    assert update["has_fatal_error"] is True
    assert update["error_node"] == "follow_up"
    assert update["last_error"] == "down"
    assert update["fatal_exception"] is error
