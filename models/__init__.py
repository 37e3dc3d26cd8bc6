# models/__init__.py
"""Export the script and outline model types.

This package exposes a stable import surface for the Pydantic models shared by
the parsers, the assembler and the workflow state.
"""

from .script_models import (
    Character,
    Choice,
    ChoiceTarget,
    FragmentChoice,
    FragmentNode,
    GalgameScript,
    Scene,
    ScriptChunk,
    StoryBeat,
    StoryNode,
    StoryOutline,
    TargetKind,
    VisualSpec,
)

__all__ = [
    "Character",
    "Choice",
    "ChoiceTarget",
    "FragmentChoice",
    "FragmentNode",
    "GalgameScript",
    "Scene",
    "ScriptChunk",
    "StoryBeat",
    "StoryNode",
    "StoryOutline",
    "TargetKind",
    "VisualSpec",
]
