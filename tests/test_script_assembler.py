# tests/test_script_assembler.py
import pytest

import config
from core.exceptions import MalformedOutputError
from core.parsers.fragment_parser import normalize_fragment_nodes
from core.script_assembler import (
    DEFAULT_SCENE_ID,
    assemble,
    close_tail,
    link_fragments,
    normalize_script,
    relink_tail,
)
from models.script_models import Choice, GalgameScript, Scene, StoryNode


def _assert_graph_invariants(script: GalgameScript) -> None:
    ids = [node.id for node in script.nodes]
    assert len(ids) == len(set(ids))
    assert script.start_node_id in ids
    for index, node in enumerate(script.nodes):
        for choice in node.choices:
            assert choice.next_node_id in ids
        if not node.choices:
            assert node.is_ending, f"{node.id} is a silent dead end"
        if index < len(script.nodes) - 1 and not node.is_ending:
            assert node.choices


class TestAssemble:
    def test_fragments_are_linked_across_boundaries(self, sample_outline, fragment_factory) -> None:
        first = fragment_factory(
            ("local_1", None, "Rain.", ["NEXT"]),
            ("local_2", "aki", "Late again.", ["END_OF_FRAGMENT"]),
        )
        second = fragment_factory(
            ("local_1", "ren", "Sorry!", ["NEXT"]),
            ("local_2", "aki", "Let's go.", ["END_OF_FRAGMENT"]),
        )

        script = assemble(sample_outline, [first, second])

        assert [node.id for node in script.nodes] == ["node_1", "node_2", "node_3", "node_4"]
        assert [node.choices[0].next_node_id for node in script.nodes[:3]] == ["node_2", "node_3", "node_4"]
        assert script.nodes[-1].choices == []
        assert script.nodes[-1].is_ending is True
        assert script.start_node_id == "node_1"
        _assert_graph_invariants(script)

    def test_local_references_are_remapped_per_fragment(self, sample_outline, fragment_factory) -> None:
        first = fragment_factory(
            ("local_1", None, "Fork.", ["local_2", "local_3"]),
            ("local_2", None, "Left.", ["local_3"]),
            ("local_3", None, "Joined.", ["END_OF_FRAGMENT"]),
        )
        second = fragment_factory(("local_1", None, "After.", ["missing_id"]), ("local_2", None, "End.", []))

        script = assemble(sample_outline, [first, second])

        assert [choice.next_node_id for choice in script.nodes[0].choices] == ["node_2", "node_3"]
        # Unresolvable local target falls back to the next sibling.
        assert script.nodes[3].choices[0].next_node_id == "node_5"
        _assert_graph_invariants(script)

    def test_branch_can_skip_to_the_next_fragment(self, sample_outline, fragment_factory) -> None:
        first = fragment_factory(
            ("a", None, "Wait for the train?", ["b", "END_OF_FRAGMENT"]),
            ("b", None, "You wait.", ["END_OF_FRAGMENT"]),
        )
        second = fragment_factory(("c", None, "The train arrives.", []))

        script = assemble(sample_outline, [first, second])

        assert [choice.next_node_id for choice in script.nodes[0].choices] == ["node_2", "node_3"]
        assert script.nodes[1].choices[0].next_node_id == "node_3"
        _assert_graph_invariants(script)

    def test_end_of_fragment_in_last_fragment(self, sample_outline, fragment_factory) -> None:
        fragment = fragment_factory(("a", None, "Fork.", ["NEXT", "END_OF_FRAGMENT"]), ("b", None, "Tail.", []))

        closed = assemble(sample_outline, [fragment])
        opened = assemble(sample_outline, [fragment], open_tail=True)

        assert [choice.next_node_id for choice in closed.nodes[0].choices] == ["node_2"]
        assert [choice.next_node_id for choice in opened.nodes[0].choices] == ["node_2", "node_2"]
        assert opened.nodes[1].choices[0].next_node_id == "node_2"

    def test_declared_ending_inside_a_fragment_is_kept(self, sample_outline) -> None:
        fragment = normalize_fragment_nodes(
            [
                {"id": "a", "text": "The bridge gives way.", "sceneId": "station", "isEnding": True, "choices": []},
                {"id": "b", "text": "Or did it?", "sceneId": "station"},
            ]
        )
        second = normalize_fragment_nodes([{"id": "c", "text": "Morning.", "sceneId": "station"}])

        script = assemble(sample_outline, [fragment, second])

        assert script.nodes[0].is_ending is True
        assert script.nodes[0].choices == []
        assert script.nodes[1].is_ending is False
        assert script.nodes[1].choices[0].next_node_id == "node_3"
        assert normalize_script(script) == script
        _assert_graph_invariants(script)

    def test_declared_ending_on_open_tail_stays_open(self, sample_outline) -> None:
        fragment = normalize_fragment_nodes([{"id": "a", "text": "Fin?", "sceneId": "station", "isEnding": True}])

        script = assemble(sample_outline, [fragment], open_tail=True)

        assert script.nodes[0].is_ending is False
        assert script.nodes[0].choices[0].next_node_id == "node_1"

    def test_empty_fragments_are_skipped(self, sample_outline, fragment_factory) -> None:
        fragment = fragment_factory(("a", None, "Only node.", ["END_OF_FRAGMENT"]))

        script = assemble(sample_outline, [[], fragment, []])

        assert [node.id for node in script.nodes] == ["node_1"]
        assert script.nodes[0].is_ending is True

    def test_all_fragments_empty_raises(self, sample_outline) -> None:
        with pytest.raises(MalformedOutputError):
            assemble(sample_outline, [[], []])

    def test_open_tail_keeps_a_self_loop(self, sample_outline, fragment_factory) -> None:
        fragment = fragment_factory(("a", None, "One.", ["NEXT"]), ("b", None, "Two.", ["END_OF_FRAGMENT"]))

        script = assemble(sample_outline, [fragment], open_tail=True)

        tail = script.nodes[-1]
        assert [choice.next_node_id for choice in tail.choices] == [tail.id]
        assert tail.is_ending is False

    def test_unknown_speaker_becomes_stub_character(self, sample_outline, fragment_factory) -> None:
        fragment = fragment_factory(("a", "stranger", "Who are you?", ["NEXT"]), ("b", "Ren", "Me.", []))

        script = assemble(sample_outline, [fragment])

        stub = next(character for character in script.characters if character.id == "stranger")
        assert stub.name == "stranger"
        # Speakers may be referenced by display name.
        assert script.nodes[1].character_id == "ren"
        assert len(script.characters) == 3

    def test_unknown_scene_falls_back_to_previous_scene(self, sample_outline, fragment_factory) -> None:
        sample_outline.scenes.append(Scene(id="cafe", description="Cafe"))
        fragment = fragment_factory(("a", None, "x", ["NEXT"]), scene_id="cafe") + fragment_factory(
            ("b", None, "y", []), scene_id="nowhere"
        )

        script = assemble(sample_outline, [fragment])

        assert [node.scene_id for node in script.nodes] == ["cafe", "cafe"]

    def test_default_scene_is_synthesized_for_empty_roster(self, sample_outline, fragment_factory) -> None:
        sample_outline.scenes.clear()
        fragment = fragment_factory(("a", None, "x", []), scene_id="")

        script = assemble(sample_outline, [fragment])

        assert script.nodes[0].scene_id == DEFAULT_SCENE_ID
        assert [scene.id for scene in script.scenes] == [DEFAULT_SCENE_ID]


class TestNormalizeScript:
    def test_dead_end_interior_node_gets_continue_choice(self) -> None:
        script = GalgameScript(
            title="T",
            scenes=[Scene(id="s")],
            nodes=[
                StoryNode(id="n1", scene_id="s", choices=[Choice(text="go", next_node_id="n2")]),
                StoryNode(id="n2", scene_id="s", choices=[]),
                StoryNode(id="n3", scene_id="s", choices=[]),
            ],
            start_node_id="n1",
        )

        normalized = normalize_script(script)

        n2 = normalized.get_node("n2")
        assert [(c.text, c.next_node_id) for c in n2.choices] == [(config.CONTINUE_CHOICE_TEXT, "n3")]
        assert normalized.get_node("n3").is_ending is True
        _assert_graph_invariants(normalized)

    def test_dangling_targets_and_bad_start_are_repaired(self) -> None:
        script = GalgameScript(
            title="T",
            scenes=[Scene(id="s")],
            nodes=[
                StoryNode(id="n1", scene_id="s", choices=[Choice(text="go", next_node_id="ghost")]),
                StoryNode(id="n2", scene_id="s", choices=[Choice(text="go", next_node_id="ghost")]),
            ],
            start_node_id="missing",
        )

        normalized = normalize_script(script)

        assert normalized.nodes[0].choices[0].next_node_id == "n2"
        assert normalized.nodes[1].choices == []
        assert normalized.nodes[1].is_ending is True
        assert normalized.start_node_id == "n1"

    def test_duplicate_ids_and_narration_ids_are_repaired(self) -> None:
        script = GalgameScript(
            title="T",
            scenes=[Scene(id="s")],
            nodes=[
                StoryNode(id="n", scene_id="s", character_id="undefined"),
                StoryNode(id="n", scene_id="s", character_id="narration"),
            ],
            start_node_id="n",
        )

        normalized = normalize_script(script)

        assert [node.id for node in normalized.nodes] == ["n", "n_2"]
        assert all(node.character_id is None for node in normalized.nodes)
        _assert_graph_invariants(normalized)

    def test_normalization_is_idempotent(self, sample_outline, fragment_factory) -> None:
        fragment = fragment_factory(
            ("a", "ghost", "x", ["b", "zzz"]),
            ("b", None, "y", []),
            ("c", "aki", "z", ["a"]),
        )
        script = assemble(sample_outline, [fragment])

        assert normalize_script(script) == script

    def test_input_is_not_mutated(self) -> None:
        script = GalgameScript(
            title="T",
            scenes=[Scene(id="s")],
            nodes=[StoryNode(id="n1", scene_id="s"), StoryNode(id="n2", scene_id="s")],
        )

        normalize_script(script)

        assert script.nodes[0].choices == []
        assert script.start_node_id == ""


class TestTailHandling:
    def _open_tail_nodes(self) -> list[StoryNode]:
        return [
            StoryNode(id="node_1", scene_id="s", choices=[Choice(text="go", next_node_id="node_2")]),
            StoryNode(
                id="node_2",
                scene_id="s",
                choices=[Choice(text="stay", next_node_id="node_2"), Choice(text="back", next_node_id="node_1")],
            ),
        ]

    def test_relink_points_self_loop_at_next_segment(self) -> None:
        relinked = relink_tail(self._open_tail_nodes(), "seg2_node_1")

        assert [choice.next_node_id for choice in relinked[-1].choices] == ["seg2_node_1", "node_1"]
        assert relinked[-1].is_ending is False

    def test_relink_adds_continue_choice_to_bare_ending(self) -> None:
        nodes = [StoryNode(id="node_1", scene_id="s", is_ending=True)]

        relinked = relink_tail(nodes, "seg2_node_1")

        assert relinked[-1].choices[0].next_node_id == "seg2_node_1"
        assert relinked[-1].is_ending is False
        assert nodes[0].is_ending is True

    def test_close_tail_removes_self_loop(self) -> None:
        nodes = [StoryNode(id="node_1", scene_id="s", choices=[Choice(text="stay", next_node_id="node_1")])]

        closed = close_tail(nodes)

        assert closed[-1].choices == []
        assert closed[-1].is_ending is True

    def test_link_fragments_uses_prefix_and_extends_roster(self, sample_outline, fragment_factory) -> None:
        fragment = fragment_factory(("local_1", "newcomer", "Hi.", ["NEXT"]), ("local_2", None, "...", ["END_OF_FRAGMENT"]))

        nodes, characters, scenes = link_fragments(
            [fragment],
            sample_outline.characters,
            sample_outline.scenes,
            id_prefix="seg2_node",
            open_tail=True,
        )

        assert [node.id for node in nodes] == ["seg2_node_1", "seg2_node_2"]
        assert nodes[-1].choices[0].next_node_id == "seg2_node_2"
        assert "newcomer" in {character.id for character in characters}
        assert len(sample_outline.characters) == 2
        assert scenes == sample_outline.scenes
