# core/langgraph/nodes/segment_nodes.py
"""Nodes of the streaming workflow that extend a script segment by segment."""

import structlog

import config
from agents.follow_up_agent import generate_follow_up_nodes
from core.exceptions import GalforgeError
from core.langgraph.state import ScriptState, fatal_error_update
from core.script_assembler import close_tail, link_fragments, normalize_script, relink_tail

logger = structlog.get_logger(__name__)


def begin_segment(state: ScriptState) -> ScriptState:
    """Advance `current_segment_index` to the next segment."""
    index = state.get("current_segment_index", 0) + 1
    logger.info(
        "begin_segment: starting segment",
        segment=index + 1,
        total=len(state.get("segments", [])),
    )
    return {"current_segment_index": index, "current_node": "begin_segment"}


async def generate_segment_follow_up(state: ScriptState) -> ScriptState:
    """Generate the nodes of the current segment and attach them to the script.

    The accumulated tail is relinked to the first new node, the new nodes get
    a per-segment id prefix and keep an open tail for the next segment.

    Args:
        state: Workflow state. Reads `script`, `segments` and
            `current_segment_index`.

    Returns:
        Partial state update containing the extended `script` and the new nodes
        as `last_chunk_nodes`.
    """
    script = state.get("script")
    segments = state.get("segments", [])
    index = state.get("current_segment_index", 0)

    if script is None or index >= len(segments):
        logger.error("generate_segment_follow_up: missing script or segment", segment=index + 1)
        return {
            "current_node": "follow_up",
            "has_fatal_error": True,
            "last_error": "No script to extend",
            "error_node": "follow_up",
        }

    last_node_text = script.nodes[-1].text if script.nodes else ""

    try:
        fragment = await generate_follow_up_nodes(
            script.characters,
            script.scenes,
            last_node_text,
            segments[index],
        )
    except GalforgeError as e:
        logger.error("generate_segment_follow_up: segment failed", segment=index + 1, error=str(e))
        return fatal_error_update("follow_up", e)

    new_nodes, characters, scenes = link_fragments(
        [fragment],
        script.characters,
        script.scenes,
        id_prefix=f"seg{index + 1}_node",
        open_tail=True,
    )

    extended = script.model_copy(
        update={
            "nodes": [*relink_tail(script.nodes, new_nodes[0].id), *new_nodes],
            "characters": characters,
            "scenes": scenes,
        }
    )

    logger.info(
        "generate_segment_follow_up: segment appended",
        segment=index + 1,
        new_nodes=len(new_nodes),
        total_nodes=len(extended.nodes),
    )
    return {
        "script": extended,
        "last_chunk_nodes": new_nodes,
        "current_node": "follow_up",
    }


def finalize_streamed_script(state: ScriptState) -> ScriptState:
    """Close the open tail and run the integrity pass over the whole script."""
    script = state.get("script")
    if script is None:
        return {"current_node": "finalize_script"}

    closed = script.model_copy(
        update={
            "nodes": close_tail(script.nodes),
            "synopsis": script.synopsis or config.STREAMED_SCRIPT_SYNOPSIS,
        }
    )
    final_script = normalize_script(closed)
    if final_script.nodes:
        final_script.start_node_id = final_script.nodes[0].id

    logger.info("finalize_streamed_script: script finalized", nodes=len(final_script.nodes))
    return {"script": final_script, "current_node": "finalize_script"}
