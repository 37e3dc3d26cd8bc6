# core/langgraph/nodes/assemble_script_node.py
"""Assemble generated fragments into a script."""

import structlog

from core.exceptions import GalforgeError
from core.langgraph.state import ScriptState, fatal_error_update
from core.script_assembler import assemble

logger = structlog.get_logger(__name__)


def assemble_script(state: ScriptState) -> ScriptState:
    """Merge `fragments` into `script`.

    Args:
        state: Workflow state. Reads `outline`, `fragments` and `open_tail`.

    Returns:
        Partial state update containing `script` and
        `current_node="assemble_script"`, or a fatal error update when no
        fragment produced any node.
    """
    outline = state.get("outline")
    fragments = state.get("fragments", [])

    if outline is None:
        logger.error("assemble_script: no outline in state")
        return {
            "current_node": "assemble_script",
            "has_fatal_error": True,
            "last_error": "Cannot assemble a script without an outline",
            "error_node": "assemble_script",
        }

    try:
        script = assemble(outline, fragments, open_tail=state.get("open_tail", False))
    except GalforgeError as e:
        logger.error("assemble_script: assembly failed", error=str(e))
        return fatal_error_update("assemble_script", e)

    return {
        "script": script,
        "last_chunk_nodes": list(script.nodes),
        "current_node": "assemble_script",
    }
