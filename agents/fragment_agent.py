# agents/fragment_agent.py
"""Generate script node fragments for batches of story beats."""

from __future__ import annotations

import structlog

import config
from core.exceptions import MalformedOutputError, ProviderError
from core.llm_interface import llm_service
from core.parsers.fragment_parser import parse_fragment_response
from core.retry import with_retry
from models.script_models import Character, FragmentNode, Scene, StoryBeat
from prompts.prompt_renderer import render_prompt, render_system_prompt

logger = structlog.get_logger(__name__)


def batch_beats(beats: list[StoryBeat], batch_size: int | None = None) -> list[list[StoryBeat]]:
    """Group beats into consecutive batches, one fragment call per batch."""
    size = max(1, batch_size or config.BEATS_PER_FRAGMENT)
    return [beats[i : i + size] for i in range(0, len(beats), size)]


async def generate_fragment(
    full_text: str,
    characters: list[Character],
    scenes: list[Scene],
    beats: list[StoryBeat],
    previous_context_hint: str | None = None,
) -> list[FragmentNode]:
    """Generate the nodes covering one batch of beats.

    Args:
        full_text: Source prose the beats were derived from.
        characters: Cast roster; speakers are chosen from it.
        scenes: Scene roster; `sceneId`s are chosen from it.
        beats: The beats this fragment must cover.
        previous_context_hint: Text of the last node of the previous fragment,
            used for continuity.

    Returns:
        The parsed fragment nodes, or an empty list when the call failed or its
        output could not be parsed. The caller decides whether to drop it.

    Raises:
        ConfigurationError: If no completion API key is configured.
    """
    beat_ids = [beat.id for beat in beats]
    logger.info("generate_fragment: processing beats", beat_ids=beat_ids)

    system_instruction = render_system_prompt(
        "fragment_generator",
        {
            "characters": characters,
            "scenes": scenes,
            "beats": beats,
            "previous_context": previous_context_hint or "",
        },
    )
    user_content = render_prompt("fragment_generator/user.j2", {"story_text": full_text})

    try:
        response = await with_retry(
            lambda: llm_service.complete(
                system_instruction,
                user_content,
                model_name=config.COMPLETION_MODEL,
                temperature=config.TEMPERATURE_FRAGMENT,
                top_p=config.LLM_TOP_P,
                max_tokens=config.MAX_FRAGMENT_TOKENS,
            ),
            operation_name="fragment generation",
        )
        nodes = parse_fragment_response(response)
    except (ProviderError, MalformedOutputError) as e:
        logger.error("generate_fragment: fragment dropped", beat_ids=beat_ids, error=str(e))
        return []

    logger.info("generate_fragment: fragment generated", beat_ids=beat_ids, nodes=len(nodes))
    return nodes
