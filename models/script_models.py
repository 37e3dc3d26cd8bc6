# models/script_models.py
"""Define the galgame script data model.

These models are the in-memory representation of a generated script and of the
intermediate artifacts (outline, beats) produced while generating it.

Notes:
- Field names are snake_case in Python and camelCase on the wire
  (`characterId`, `nextNodeId`, `visualTraits`, ...). Use
  `model_dump(by_alias=True)` / [`to_wire()`](models/script_models.py:1) when
  handing a script to the presentation layer.
- Models validate *shape* only. Referential integrity (choice targets, scene and
  character references, start node) is enforced by the script assembler.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ScriptModel(BaseModel):
    """Base model with camelCase aliases and name-based population."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON shape, omitting unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Character(ScriptModel):
    """A member of the cast. Referenced by nodes through `character_id`."""

    id: str
    name: str
    description: str = ""
    visual_traits: str = ""
    theme_color: str | None = None


class Scene(ScriptModel):
    """A location/backdrop. `image_url` is the only field filled after creation."""

    id: str
    description: str = ""
    mood: str = ""
    visual_prompt: str = ""
    image_url: str | None = None


class Choice(ScriptModel):
    """An outgoing edge of a node."""

    text: str
    next_node_id: str
    mood_effect: str | None = None


class VisualSpec(ScriptModel):
    """A node-level illustration request: a key item or an event CG."""

    type: Literal["item", "cg"] = "cg"
    description: str = ""
    visual_prompt: str = ""
    image_url: str | None = None


class TargetKind(str, Enum):
    """How a fragment-local choice target is to be resolved."""

    RESOLVED = "resolved"
    NEXT_SIBLING = "next_sibling"
    END_OF_FRAGMENT = "end_of_fragment"


NEXT_TOKENS = frozenset({"NEXT", "NEXT_PLACEHOLDER"})
END_OF_FRAGMENT_TOKEN = "END_OF_FRAGMENT"


class ChoiceTarget(BaseModel):
    """Tagged reference used by fragments before linking.

    `node_id` is set only for `TargetKind.RESOLVED`; it may still name a node
    local to the fragment, which the assembler remaps to a global id.
    """

    model_config = ConfigDict(frozen=True)

    kind: TargetKind
    node_id: str | None = None

    @classmethod
    def resolved(cls, node_id: str) -> ChoiceTarget:
        return cls(kind=TargetKind.RESOLVED, node_id=node_id)

    @classmethod
    def next_sibling(cls) -> ChoiceTarget:
        return cls(kind=TargetKind.NEXT_SIBLING)

    @classmethod
    def end_of_fragment(cls) -> ChoiceTarget:
        return cls(kind=TargetKind.END_OF_FRAGMENT)

    @classmethod
    def from_token(cls, raw: Any) -> ChoiceTarget:
        """Parse a raw `nextNodeId` value from model output.

        Missing or blank values are treated as "continue to the next node".
        """
        token = str(raw).strip() if raw is not None else ""
        if not token or token.upper() in NEXT_TOKENS:
            return cls.next_sibling()
        if token.upper() == END_OF_FRAGMENT_TOKEN:
            return cls.end_of_fragment()
        return cls.resolved(token)


class FragmentChoice(ScriptModel):
    text: str
    target: ChoiceTarget
    mood_effect: str | None = None


class FragmentNode(ScriptModel):
    """A node as generated inside one fragment, before linking."""

    id: str
    scene_id: str = ""
    character_id: str | None = None
    text: str = ""
    choices: list[FragmentChoice] = Field(default_factory=list)
    is_ending: bool = False
    visual_specs: VisualSpec | None = None


class StoryNode(ScriptModel):
    """A single unit of narration or dialogue plus its outgoing choices.

    `character_id` is `None` for narration.
    """

    id: str
    scene_id: str
    character_id: str | None = None
    text: str = ""
    choices: list[Choice] = Field(default_factory=list)
    is_ending: bool = False
    visual_specs: VisualSpec | None = None


class StoryBeat(ScriptModel):
    """A coarse plot point produced by outlining; pipeline-only."""

    id: str
    summary: str
    location_id: str = ""
    required_characters: list[str] = Field(default_factory=list)


class StoryOutline(ScriptModel):
    """Macro-level plan of a story; superseded once the script is assembled."""

    title: str
    synopsis: str = ""
    beats: list[StoryBeat] = Field(default_factory=list)
    characters: list[Character] = Field(default_factory=list)
    scenes: list[Scene] = Field(default_factory=list)


class GalgameScript(ScriptModel):
    """The final, playable script graph."""

    title: str
    synopsis: str = ""
    characters: list[Character] = Field(default_factory=list)
    scenes: list[Scene] = Field(default_factory=list)
    nodes: list[StoryNode] = Field(default_factory=list)
    start_node_id: str = ""

    def node_ids(self) -> set[str]:
        return {node.id for node in self.nodes}

    def get_node(self, node_id: str) -> StoryNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None


class ScriptChunk(ScriptModel):
    """Partial script delivered while streaming.

    The first chunk of a run carries the full initial script (`is_initial=True`);
    later chunks carry only the nodes generated for one segment.
    """

    segment: int
    nodes: list[StoryNode] = Field(default_factory=list)
    is_initial: bool = False
    script: GalgameScript | None = None
