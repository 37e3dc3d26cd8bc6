# core/langgraph/subgraphs/single_shot.py
"""Build the single-shot script generation subgraph.

outline → fragment loop (one iteration per beat batch) → assemble.

The compiled graph runs on its own for stories under the streaming threshold
and is mounted as the first-segment node of the streaming workflow.
"""

from typing import Literal

import structlog
from langgraph.graph import END, StateGraph  # type: ignore

from core.langgraph.nodes.assemble_script_node import assemble_script
from core.langgraph.nodes.fragment_node import generate_next_fragment
from core.langgraph.nodes.outline_node import generate_script_outline
from core.langgraph.state import ScriptState

logger = structlog.get_logger(__name__)


def should_handle_error(state: ScriptState) -> Literal["error", "continue"]:
    """Route to the error handler when the workflow is in a fatal error state.

    Args:
        state: Workflow state. Uses `has_fatal_error` plus optional diagnostics
            (`last_error`, `error_node`).

    Returns:
        "error" when `has_fatal_error` is true, otherwise "continue".
    """
    if state.get("has_fatal_error", False):
        logger.error(
            "should_handle_error: fatal error detected",
            error=state.get("last_error"),
            node=state.get("error_node"),
        )
        return "error"

    return "continue"


def should_continue_fragments(state: ScriptState) -> Literal["continue", "end", "error"]:
    """Route within the subgraph based on fragment progress.

    Args:
        state: Workflow state. This function reads:
            - current_fragment_index: Index of the next batch to generate.
            - fragment_batches: Beat batches planned from the outline.

    Returns:
        "continue" to generate another fragment, "end" to assemble the script,
        or "error" on a fatal error.
    """
    if state.get("has_fatal_error", False):
        return "error"

    current_index = state.get("current_fragment_index", 0)
    batches = state.get("fragment_batches", [])

    if current_index < len(batches):
        return "continue"

    return "end"


def handle_fatal_error(state: ScriptState) -> ScriptState:
    """Finalize state for a clean exit after a fatal workflow error.

    Returns:
        Updated state with `current_node="error_handler"`.
    """
    logger.error(
        "handle_fatal_error: workflow terminated due to fatal error",
        error=state.get("last_error"),
        failed_node=state.get("error_node"),
        segment=state.get("current_segment_index", 0) + 1,
    )
    return {"current_node": "error_handler"}


def create_single_shot_subgraph() -> StateGraph:
    """Create and compile the single-shot generation subgraph.

    Returns:
        A compiled `StateGraph` that turns `story_text` into `script`.
    """
    workflow = StateGraph(ScriptState)

    workflow.add_node("generate_outline", generate_script_outline)
    workflow.add_node("generate_fragment", generate_next_fragment)
    workflow.add_node("assemble_script", assemble_script)
    workflow.add_node("error_handler", handle_fatal_error)

    workflow.set_entry_point("generate_outline")

    workflow.add_conditional_edges(
        "generate_outline",
        should_handle_error,
        {"continue": "generate_fragment", "error": "error_handler"},
    )
    workflow.add_conditional_edges(
        "generate_fragment",
        should_continue_fragments,
        {"continue": "generate_fragment", "end": "assemble_script", "error": "error_handler"},
    )
    workflow.add_conditional_edges(
        "assemble_script",
        should_handle_error,
        {"continue": END, "error": "error_handler"},
    )
    workflow.add_edge("error_handler", END)

    return workflow.compile()


__all__ = [
    "create_single_shot_subgraph",
    "handle_fatal_error",
    "should_continue_fragments",
    "should_handle_error",
]
