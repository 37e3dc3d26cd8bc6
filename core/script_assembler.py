# core/script_assembler.py
"""Merge generated fragments into a playable script graph.

The assembler is the integrity backstop of the pipeline. Generation stages are
unreliable, so instead of rejecting imperfect output the assembler repairs it:

- Fragment-local ids are replaced by globally unique ids (`{prefix}_{n}`).
- Placeholder targets are linked: "next sibling" to the structurally next node,
  "end of fragment" to the first node of the following fragment.
- Unknown scenes fall back to a known scene; unknown speakers get a stub
  character so the roster stays complete.
- [`normalize_script()`](core/script_assembler.py:1) guarantees that every
  choice resolves, no node is a silent dead end and the start node exists.

All functions return new objects; inputs are never mutated.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

import config
from core.exceptions import MalformedOutputError
from core.parsers.fragment_parser import normalize_character_id
from models.script_models import (
    Character,
    Choice,
    FragmentNode,
    GalgameScript,
    Scene,
    StoryNode,
    StoryOutline,
    TargetKind,
)

logger = structlog.get_logger(__name__)

DEFAULT_SCENE_ID = "scene_default"


class _Roster:
    """Working copy of the cast and scene lists used while repairing nodes."""

    def __init__(self, characters: Sequence[Character], scenes: Sequence[Scene]):
        self.characters = [character.model_copy() for character in characters]
        self.scenes = [scene.model_copy() for scene in scenes]
        self._character_ids = {character.id for character in self.characters}
        self._character_names = {character.name: character.id for character in self.characters}
        self._scene_ids = {scene.id for scene in self.scenes}

    def resolve_character(self, raw_character_id: str | None) -> str | None:
        character_id = normalize_character_id(raw_character_id)
        if character_id is None or character_id in self._character_ids:
            return character_id
        if character_id in self._character_names:
            return self._character_names[character_id]

        logger.warning("Unknown speaker added to the cast as a stub", character_id=character_id)
        stub = Character(
            id=character_id,
            name=character_id,
            description="Auto-generated character (not present in the outline)",
        )
        self.characters.append(stub)
        self._character_ids.add(character_id)
        self._character_names.setdefault(stub.name, character_id)
        return character_id

    def resolve_scene(self, scene_id: str, previous_scene_id: str | None) -> str:
        if scene_id in self._scene_ids:
            return scene_id
        if previous_scene_id and previous_scene_id in self._scene_ids:
            fallback = previous_scene_id
        elif self.scenes:
            fallback = self.scenes[0].id
        else:
            logger.warning("Scene roster is empty; synthesizing a default scene")
            self.scenes.append(Scene(id=DEFAULT_SCENE_ID, description="Default scene"))
            self._scene_ids.add(DEFAULT_SCENE_ID)
            fallback = DEFAULT_SCENE_ID
        if scene_id:
            logger.debug("Unknown scene replaced", scene_id=scene_id, replacement=fallback)
        return fallback


def _continue_choice(target_id: str) -> Choice:
    return Choice(text=config.CONTINUE_CHOICE_TEXT, next_node_id=target_id)


def link_fragments(
    fragments: Sequence[Sequence[FragmentNode]],
    characters: Sequence[Character],
    scenes: Sequence[Scene],
    *,
    id_prefix: str = "node",
    open_tail: bool = False,
) -> tuple[list[StoryNode], list[Character], list[Scene]]:
    """Concatenate fragments and resolve every placeholder target.

    Args:
        fragments: Fragment node lists in beat order. Empty fragments are skipped.
        characters: Cast roster; unknown speakers are added to a copy as stubs.
        scenes: Scene roster; a default scene is added to a copy when empty and
            needed.
        id_prefix: Prefix of the generated global ids.
        open_tail: When True the final node keeps a self-loop choice instead of
            becoming an ending, so a later segment can be attached to it.

    Returns:
        `(nodes, characters, scenes)` with the possibly extended rosters.
    """
    roster = _Roster(characters, scenes)
    populated = [list(fragment) for fragment in fragments if fragment]

    flat: list[tuple[int, FragmentNode, str]] = []
    local_maps: list[dict[str, str]] = []
    fragment_first_ids: list[str] = []
    counter = 0
    for fragment_index, fragment in enumerate(populated):
        local_map: dict[str, str] = {}
        fragment_first_ids.append(f"{id_prefix}_{counter + 1}")
        for fragment_node in fragment:
            counter += 1
            global_id = f"{id_prefix}_{counter}"
            local_map.setdefault(fragment_node.id, global_id)
            flat.append((fragment_index, fragment_node, global_id))
        local_maps.append(local_map)

    # Forward links leaving the very last node await the next segment or end the story.
    open_end_id = flat[-1][2] if (flat and open_tail) else None

    nodes: list[StoryNode] = []
    previous_scene_id: str | None = None
    for position, (fragment_index, fragment_node, global_id) in enumerate(flat):
        is_last = position == len(flat) - 1
        sibling_id = open_end_id if is_last else flat[position + 1][2]
        if fragment_index + 1 < len(fragment_first_ids):
            fragment_end_id = fragment_first_ids[fragment_index + 1]
        else:
            fragment_end_id = open_end_id

        choices: list[Choice] = []
        for fragment_choice in fragment_node.choices:
            target = fragment_choice.target
            if target.kind is TargetKind.RESOLVED:
                resolved_id = local_maps[fragment_index].get(target.node_id or "")
                if resolved_id is None:
                    logger.debug("Unresolvable choice target relinked to next node", target=target.node_id, node_id=global_id)
                    resolved_id = sibling_id
            elif target.kind is TargetKind.END_OF_FRAGMENT:
                resolved_id = fragment_end_id
            else:
                resolved_id = sibling_id

            if resolved_id is None:
                continue
            choices.append(
                Choice(
                    text=fragment_choice.text,
                    next_node_id=resolved_id,
                    mood_effect=fragment_choice.mood_effect,
                )
            )

        if is_last and open_tail and not choices:
            choices.append(_continue_choice(global_id))
        # Model-declared endings stay endings, except on an open tail.
        is_ending = (fragment_node.is_ending and not (is_last and open_tail)) or (is_last and not open_tail and not choices)

        scene_id = roster.resolve_scene(fragment_node.scene_id, previous_scene_id)
        previous_scene_id = scene_id

        nodes.append(
            StoryNode(
                id=global_id,
                scene_id=scene_id,
                character_id=roster.resolve_character(fragment_node.character_id),
                text=fragment_node.text or "",
                choices=choices,
                is_ending=is_ending,
                visual_specs=fragment_node.visual_specs.model_copy() if fragment_node.visual_specs else None,
            )
        )

    return nodes, roster.characters, roster.scenes


def assemble(
    outline: StoryOutline,
    fragments: Sequence[Sequence[FragmentNode]],
    *,
    id_prefix: str = "node",
    open_tail: bool = False,
) -> GalgameScript:
    """Build a script from an outline and its fragments.

    Raises:
        MalformedOutputError: If every fragment is empty.
    """
    if not any(fragments):
        raise MalformedOutputError(
            "No script nodes were generated",
            details={"fragments": len(fragments)},
        )

    nodes, characters, scenes = link_fragments(
        fragments,
        outline.characters,
        outline.scenes,
        id_prefix=id_prefix,
        open_tail=open_tail,
    )
    script = GalgameScript(
        title=outline.title or config.DEFAULT_SCRIPT_TITLE,
        synopsis=outline.synopsis,
        characters=characters,
        scenes=scenes,
        nodes=nodes,
        start_node_id=nodes[0].id,
    )
    logger.info(
        "Script assembled",
        fragments=sum(1 for fragment in fragments if fragment),
        nodes=len(nodes),
        characters=len(characters),
        scenes=len(scenes),
    )
    return normalize_script(script)


def _rekey_duplicates(nodes: list[StoryNode]) -> None:
    seen: set[str] = set()
    all_ids = {node.id for node in nodes}
    for node in nodes:
        if node.id not in seen:
            seen.add(node.id)
            continue
        suffix = 2
        while f"{node.id}_{suffix}" in all_ids:
            suffix += 1
        new_id = f"{node.id}_{suffix}"
        logger.warning("Duplicate node id re-keyed", node_id=node.id, new_id=new_id)
        node.id = new_id
        seen.add(new_id)
        all_ids.add(new_id)


def normalize_script(script: GalgameScript) -> GalgameScript:
    """Repair a script so it satisfies the graph invariants.

    Guarantees on the returned script:
    - Node ids are unique.
    - Every choice target names an existing node (dangling targets are pointed
      at the next node, or dropped on the last node).
    - Every node without choices is an ending; interior dead ends get a
      continue choice to the next node.
    - `start_node_id` names an existing node when there are nodes.
    - Speakers and scenes reference the roster.

    Applying it to its own output changes nothing.
    """
    normalized = script.model_copy(deep=True)
    nodes = normalized.nodes
    roster = _Roster(normalized.characters, normalized.scenes)

    _rekey_duplicates(nodes)
    node_ids = {node.id for node in nodes}

    previous_scene_id: str | None = None
    for index, node in enumerate(nodes):
        next_id = nodes[index + 1].id if index + 1 < len(nodes) else None

        node.character_id = roster.resolve_character(node.character_id)
        node.scene_id = roster.resolve_scene(node.scene_id, previous_scene_id)
        previous_scene_id = node.scene_id
        node.text = node.text or ""

        repaired: list[Choice] = []
        for choice in node.choices:
            if choice.next_node_id in node_ids:
                repaired.append(choice)
            elif next_id is not None:
                logger.debug("Dangling choice target repaired", node_id=node.id, target=choice.next_node_id)
                repaired.append(choice.model_copy(update={"next_node_id": next_id}))
            else:
                logger.debug("Dangling choice dropped from last node", node_id=node.id, target=choice.next_node_id)
        node.choices = repaired

        if not node.choices and not node.is_ending:
            if next_id is not None:
                logger.debug("Dead end linked to next node", node_id=node.id, next_id=next_id)
                node.choices = [_continue_choice(next_id)]
            else:
                node.is_ending = True

    if nodes and normalized.start_node_id not in node_ids:
        if normalized.start_node_id:
            logger.warning("Start node rebound to first node", start_node_id=normalized.start_node_id)
        normalized.start_node_id = nodes[0].id

    normalized.characters = roster.characters
    normalized.scenes = roster.scenes
    return normalized


def relink_tail(nodes: Sequence[StoryNode], next_first_id: str) -> list[StoryNode]:
    """Attach the accumulated node list to the first node of a new segment.

    Self-loop choices on the tail are pointed at `next_first_id`; a tail without
    choices gets a continue choice. The tail stops being an ending.
    """
    if not nodes:
        return []
    tail = nodes[-1].model_copy(deep=True)
    relinked = [
        choice.model_copy(update={"next_node_id": next_first_id}) if choice.next_node_id == tail.id else choice
        for choice in tail.choices
    ]
    if not relinked:
        relinked = [_continue_choice(next_first_id)]
    tail.choices = relinked
    tail.is_ending = False
    return [*nodes[:-1], tail]


def close_tail(nodes: Sequence[StoryNode]) -> list[StoryNode]:
    """Remove the tail's self-loop placeholder and mark it as an ending if bare."""
    if not nodes:
        return []
    tail = nodes[-1].model_copy(deep=True)
    tail.choices = [choice for choice in tail.choices if choice.next_node_id != tail.id]
    if not tail.choices:
        tail.is_ending = True
    return [*nodes[:-1], tail]
