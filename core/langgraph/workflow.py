# core/langgraph/workflow.py
"""
Build LangGraph workflows for script generation.

Two graphs are exposed:

- The single-shot graph (see
  [`create_single_shot_subgraph()`](core/langgraph/subgraphs/single_shot.py:1))
  for stories at or under the streaming threshold.
- The streaming graph, which runs the single-shot graph on the first segment
  with an open tail, then extends the script one follow-up segment at a time:

      first_segment → (begin_segment → follow_up)* → finalize_script

  Any fatal error routes to `error_handler`, which ends the run; the
  orchestrator turns that state into an exception.
"""

from typing import Literal

import structlog
from langgraph.graph import END, StateGraph  # type: ignore[import-not-found, attr-defined]

from core.langgraph.nodes.segment_nodes import (
    begin_segment,
    finalize_streamed_script,
    generate_segment_follow_up,
)
from core.langgraph.state import ScriptState
from core.langgraph.subgraphs.single_shot import (
    create_single_shot_subgraph,
    handle_fatal_error,
    should_handle_error,
)

logger = structlog.get_logger(__name__)


def should_continue_segments(state: ScriptState) -> Literal["continue", "end", "error"]:
    """Route after a segment completes.

    Args:
        state: Workflow state. Reads `current_segment_index` and `segments`.

    Returns:
        "continue" when another segment remains, "end" to finalize the script,
        or "error" on a fatal error.
    """
    if should_handle_error(state) == "error":
        return "error"

    next_index = state.get("current_segment_index", 0) + 1
    if next_index < len(state.get("segments", [])):
        return "continue"

    return "end"


def create_streaming_workflow_graph() -> StateGraph:
    """Create and compile the segment-by-segment streaming workflow.

    Returns:
        A compiled `StateGraph`. Its initial state must carry `segments`, the
        first segment as `story_text` and `open_tail=True`.
    """
    workflow = StateGraph(ScriptState)

    workflow.add_node("first_segment", create_single_shot_subgraph())
    workflow.add_node("begin_segment", begin_segment)
    workflow.add_node("follow_up", generate_segment_follow_up)
    workflow.add_node("finalize_script", finalize_streamed_script)
    workflow.add_node("error_handler", handle_fatal_error)

    workflow.set_entry_point("first_segment")

    workflow.add_conditional_edges(
        "first_segment",
        should_continue_segments,
        {"continue": "begin_segment", "end": "finalize_script", "error": END},
    )
    workflow.add_edge("begin_segment", "follow_up")
    workflow.add_conditional_edges(
        "follow_up",
        should_continue_segments,
        {"continue": "begin_segment", "end": "finalize_script", "error": "error_handler"},
    )
    workflow.add_edge("finalize_script", END)
    workflow.add_edge("error_handler", END)

    logger.debug("create_streaming_workflow_graph: graph built", entry_point="first_segment")

    return workflow.compile()


def create_single_shot_workflow_graph() -> StateGraph:
    """Return the compiled single-shot graph used for short stories."""
    return create_single_shot_subgraph()


__all__ = [
    "create_single_shot_workflow_graph",
    "create_streaming_workflow_graph",
    "should_continue_segments",
]
