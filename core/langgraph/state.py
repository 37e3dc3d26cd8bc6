# core/langgraph/state.py
"""
LangGraph state schema for script generation.

A single `ScriptState` is shared by the single-shot subgraph and the streaming
workflow so the subgraph can be mounted as a node of the streaming graph.

State field organization:
- Input: story text and, when streaming, its segments
- Outline and fragments: intermediate artifacts of the single-shot pipeline
- Script: the assembled (possibly partial) script and the latest chunk
- Workflow: control flow and iteration tracking
- Error handling: fatal error state
"""

from __future__ import annotations

from typing import TypedDict

from core.exceptions import GalforgeError
from models.script_models import FragmentNode, GalgameScript, StoryBeat, StoryNode, StoryOutline


class ScriptState(TypedDict, total=False):
    # =========================================================================
    # Input
    # =========================================================================
    story_text: str  # Text handled by the single-shot pipeline (segment 1 when streaming)
    segments: list[str]  # All segments; a single element in single-shot mode
    current_segment_index: int  # 0-based index of the segment being processed
    open_tail: bool  # Keep a self-loop on the final node for a following segment

    # =========================================================================
    # Outline and fragments
    # =========================================================================
    outline: StoryOutline | None
    fragment_batches: list[list[StoryBeat]]
    current_fragment_index: int  # Index of the next batch to generate
    fragments: list[list[FragmentNode]]
    previous_context: str  # Text of the last generated node, for continuity

    # =========================================================================
    # Script
    # =========================================================================
    script: GalgameScript | None
    last_chunk_nodes: list[StoryNode]  # Nodes added by the latest follow-up segment

    # =========================================================================
    # Workflow
    # =========================================================================
    current_node: str

    # =========================================================================
    # Error handling
    # =========================================================================
    last_error: str | None
    has_fatal_error: bool
    error_node: str | None
    fatal_exception: GalforgeError | None


# Type alias for improved readability in node signatures
State = ScriptState


def create_initial_state(
    *,
    story_text: str,
    segments: list[str] | None = None,
    open_tail: bool = False,
) -> ScriptState:
    """Create the initial state for a generation run.

    Args:
        story_text: Text for the single-shot pipeline. When streaming, this is
            the first segment.
        segments: Every segment of a streamed story. Defaults to `[story_text]`.
        open_tail: Whether the single-shot pipeline leaves its tail open.

    Returns:
        A fully populated `ScriptState`.
    """
    return {
        "story_text": story_text,
        "segments": segments if segments is not None else [story_text],
        "current_segment_index": 0,
        "open_tail": open_tail,
        "outline": None,
        "fragment_batches": [],
        "current_fragment_index": 0,
        "fragments": [],
        "previous_context": "",
        "script": None,
        "last_chunk_nodes": [],
        "current_node": "init",
        "last_error": None,
        "has_fatal_error": False,
        "error_node": None,
        "fatal_exception": None,
    }


def fatal_error_update(node_name: str, error: GalforgeError) -> ScriptState:
    """Build the state update recording a fatal error raised inside a node."""
    return {
        "current_node": node_name,
        "has_fatal_error": True,
        "last_error": str(error),
        "error_node": node_name,
        "fatal_exception": error,
    }


__all__ = [
    "ScriptState",
    "State",
    "create_initial_state",
    "fatal_error_update",
]
