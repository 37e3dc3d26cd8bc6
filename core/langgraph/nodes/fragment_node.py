# core/langgraph/nodes/fragment_node.py
"""Generate one fragment per beat batch.

The node runs once per loop iteration of the single-shot subgraph; the
`should_continue_fragments` router sends control back here until every batch
has been processed.
"""

import structlog

from agents.fragment_agent import generate_fragment
from core.exceptions import ConfigurationError
from core.langgraph.state import ScriptState, fatal_error_update

logger = structlog.get_logger(__name__)


async def generate_next_fragment(state: ScriptState) -> ScriptState:
    """Generate the fragment for `fragment_batches[current_fragment_index]`.

    Args:
        state: Workflow state. Reads `outline`, `fragment_batches`,
            `current_fragment_index`, `fragments`, `previous_context` and
            `story_text`.

    Returns:
        Partial state update appending the fragment (possibly empty) to
        `fragments`, advancing `current_fragment_index` and refreshing
        `previous_context` from the last generated node.
    """
    outline = state.get("outline")
    batches = state.get("fragment_batches", [])
    index = state.get("current_fragment_index", 0)

    if outline is None or index >= len(batches):
        logger.warning("generate_next_fragment: nothing to generate", index=index, batches=len(batches))
        return {"current_fragment_index": index + 1, "current_node": "generate_fragment"}

    logger.info("generate_next_fragment: generating fragment", fragment=index + 1, total=len(batches))

    try:
        nodes = await generate_fragment(
            state.get("story_text", ""),
            outline.characters,
            outline.scenes,
            batches[index],
            state.get("previous_context") or None,
        )
    except ConfigurationError as e:
        return fatal_error_update("generate_fragment", e)

    if not nodes:
        logger.warning("generate_next_fragment: fragment is empty and will be skipped", fragment=index + 1)

    previous_context = nodes[-1].text if nodes else state.get("previous_context", "")

    return {
        "fragments": [*state.get("fragments", []), nodes],
        "current_fragment_index": index + 1,
        "previous_context": previous_context,
        "current_node": "generate_fragment",
    }
