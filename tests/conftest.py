# tests/conftest.py
import os
import sys

import pytest

# Ensure repository root is on PYTHONPATH for tests
repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)

import config  # noqa: E402
from models.script_models import (  # noqa: E402
    Character,
    ChoiceTarget,
    FragmentChoice,
    FragmentNode,
    Scene,
    StoryBeat,
    StoryOutline,
)


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep retry backoff and image polling from sleeping in tests."""
    monkeypatch.setattr(config, "LLM_RETRY_DELAY_SECONDS", 0)
    monkeypatch.setattr(config, "IMAGE_POLL_INTERVAL_SECONDS", 0)


@pytest.fixture
def sample_outline() -> StoryOutline:
    return StoryOutline(
        title="Rainy Station",
        synopsis="Two friends meet again at a station in the rain.",
        beats=[
            StoryBeat(id="1", summary="Aki waits at the station", location_id="station"),
            StoryBeat(id="2", summary="Ren arrives late", location_id="station", required_characters=["ren"]),
        ],
        characters=[
            Character(id="aki", name="Aki", description="Patient and quiet"),
            Character(id="ren", name="Ren", description="Always late"),
        ],
        scenes=[
            Scene(id="station", description="A small rural station", mood="melancholic", visual_prompt="rural station, rain"),
        ],
    )


def make_fragment(*specs: tuple[str, str | None, str, list[str]], scene_id: str = "station") -> list[FragmentNode]:
    """Build fragment nodes from `(id, character_id, text, targets)` tuples."""
    return [
        FragmentNode(
            id=node_id,
            scene_id=scene_id,
            character_id=character_id,
            text=text,
            choices=[FragmentChoice(text="continue", target=ChoiceTarget.from_token(target)) for target in targets],
        )
        for node_id, character_id, text, targets in specs
    ]


@pytest.fixture
def fragment_factory():
    return make_fragment
