# core/langgraph/nodes/outline_node.py
"""Generate the story outline and plan fragment batches.

This is the first node of the single-shot pipeline. It runs the outline
generator over `story_text` and splits the resulting beat sheet into the
batches that the fragment loop consumes.
"""

import structlog

from agents.fragment_agent import batch_beats
from agents.outline_agent import generate_outline
from core.exceptions import GalforgeError
from core.langgraph.state import ScriptState, fatal_error_update
from models.script_models import StoryBeat

logger = structlog.get_logger(__name__)


async def generate_script_outline(state: ScriptState) -> ScriptState:
    """Generate the outline for `story_text`.

    Args:
        state: Workflow state. Reads `story_text`.

    Returns:
        Partial state update containing:
        - outline: The normalized outline.
        - fragment_batches: Beat batches for the fragment loop.
        - current_fragment_index: Reset to 0.
        - fragments: Reset to an empty list.
        - current_node: `"generate_outline"`.

        Any pipeline error is recorded as a fatal error instead.

    Notes:
        An outline without beats still yields one batch: a single beat covering
        the whole passage, so the text is adapted rather than dropped.
    """
    story_text = state.get("story_text", "")

    try:
        outline = await generate_outline(story_text)
    except GalforgeError as e:
        logger.error("generate_script_outline: outline generation failed", error=str(e))
        return fatal_error_update("generate_outline", e)

    beats = outline.beats
    if not beats:
        logger.warning("generate_script_outline: outline has no beats; adapting the passage as one beat")
        beats = [StoryBeat(id="beat_1", summary="Adapt the entire passage in order")]

    batches = batch_beats(beats)
    logger.info("generate_script_outline: fragment batches planned", batches=len(batches))

    return {
        "outline": outline,
        "fragment_batches": batches,
        "current_fragment_index": 0,
        "fragments": [],
        "previous_context": "",
        "current_node": "generate_outline",
    }
