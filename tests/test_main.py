# tests/test_main.py
import json
from pathlib import Path

from main import build_parser, write_script
from models.script_models import Character, GalgameScript, Scene, StoryNode


def test_parser_defaults() -> None:
    args = build_parser().parse_args(["story.txt"])

    assert args.story == Path("story.txt")
    assert args.output == Path("script.json")
    assert args.assets is False
    assert args.stream is None


def test_parser_stream_flags() -> None:
    assert build_parser().parse_args(["s.txt", "--stream"]).stream is True
    assert build_parser().parse_args(["s.txt", "--no-stream", "--assets", "-o", "out.json"]).stream is False


def test_script_is_written_as_camel_case_json(tmp_path: Path) -> None:
    script = GalgameScript(
        title="雨の駅",
        characters=[Character(id="aki", name="Aki", visual_traits="red scarf")],
        scenes=[Scene(id="s")],
        nodes=[StoryNode(id="node_1", scene_id="s", character_id="aki", text="遅い。", is_ending=True)],
        start_node_id="node_1",
    )
    output_path = tmp_path / "out" / "script.json"

    write_script(script, output_path)

    raw = output_path.read_text(encoding="utf-8")
    data = json.loads(raw)
    assert "雨の駅" in raw
    assert data["startNodeId"] == "node_1"
    assert data["characters"][0]["visualTraits"] == "red scarf"
    assert data["nodes"][0]["characterId"] == "aki"
