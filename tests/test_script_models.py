# tests/test_script_models.py
from models.script_models import Choice, ChoiceTarget, GalgameScript, Scene, StoryNode, TargetKind, VisualSpec


def test_choice_target_tokens() -> None:
    assert ChoiceTarget.from_token(None).kind is TargetKind.NEXT_SIBLING
    assert ChoiceTarget.from_token("  ").kind is TargetKind.NEXT_SIBLING
    assert ChoiceTarget.from_token("next").kind is TargetKind.NEXT_SIBLING
    assert ChoiceTarget.from_token("end_of_fragment").kind is TargetKind.END_OF_FRAGMENT
    assert ChoiceTarget.from_token(12) == ChoiceTarget.resolved("12")


def test_wire_format_uses_camel_case_and_omits_unset_optionals() -> None:
    script = GalgameScript(
        title="T",
        scenes=[Scene(id="s")],
        nodes=[
            StoryNode(
                id="n1",
                scene_id="s",
                text="hello",
                choices=[Choice(text="go", next_node_id="n1")],
                visual_specs=VisualSpec(type="item", description="key"),
            )
        ],
        start_node_id="n1",
    )

    wire = script.to_wire()

    assert wire["startNodeId"] == "n1"
    node = wire["nodes"][0]
    assert node["sceneId"] == "s"
    assert node["isEnding"] is False
    assert node["choices"] == [{"text": "go", "nextNodeId": "n1"}]
    assert node["visualSpecs"]["type"] == "item"
    assert "characterId" not in node
    assert "imageUrl" not in wire["scenes"][0]


def test_models_accept_wire_format() -> None:
    node = StoryNode.model_validate(
        {"id": "n1", "sceneId": "s", "characterId": "c", "choices": [{"text": "go", "nextNodeId": "n2"}]}
    )

    assert node.scene_id == "s"
    assert node.choices[0].next_node_id == "n2"
