# agents/outline_agent.py
"""Generate the macro outline of a story: cast, scenes and beat sheet."""

from __future__ import annotations

import structlog

import config
from core.llm_interface import llm_service
from core.parsers.outline_parser import parse_outline_response
from core.retry import with_retry
from models.script_models import StoryOutline
from prompts.prompt_renderer import get_system_prompt, render_prompt

logger = structlog.get_logger(__name__)


async def generate_outline(full_text: str) -> StoryOutline:
    """Run one outline completion over the whole story.

    Args:
        full_text: The complete story (or first streaming segment).

    Returns:
        A normalized outline. Missing arrays are empty and a missing title is
        replaced by the configured default.

    Raises:
        ConfigurationError: If no completion API key is configured.
        ProviderError: If the completion call fails after retries.
        MalformedOutputError: If the response contains no parseable JSON object.
    """
    logger.info("generate_outline: starting outline generation", text_length=len(full_text))

    system_instruction = get_system_prompt("outline_generator")
    user_content = render_prompt("outline_generator/user.j2", {"story_text": full_text})

    response = await with_retry(
        lambda: llm_service.complete(
            system_instruction,
            user_content,
            model_name=config.COMPLETION_MODEL,
            temperature=config.TEMPERATURE_OUTLINE,
            top_p=config.LLM_TOP_P,
            max_tokens=config.MAX_OUTLINE_TOKENS,
        ),
        operation_name="outline generation",
    )

    outline = parse_outline_response(response)

    logger.info(
        "generate_outline: outline generated",
        title=outline.title,
        beats=len(outline.beats),
        characters=len(outline.characters),
        scenes=len(outline.scenes),
    )
    return outline
