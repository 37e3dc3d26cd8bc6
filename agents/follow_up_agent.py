# agents/follow_up_agent.py
"""Generate incremental nodes for a later segment of a streamed story."""

from __future__ import annotations

import structlog

import config
from core.exceptions import MalformedOutputError
from core.llm_interface import llm_service
from core.parsers.fragment_parser import parse_fragment_response
from core.retry import with_retry
from models.script_models import Character, FragmentNode, Scene
from prompts.prompt_renderer import render_prompt, render_system_prompt

logger = structlog.get_logger(__name__)

MIN_FOLLOW_UP_NODES = 3
MAX_FOLLOW_UP_NODES = 5


async def generate_follow_up_nodes(
    characters: list[Character],
    scenes: list[Scene],
    last_node_text: str,
    segment_text: str,
) -> list[FragmentNode]:
    """Continue the script from `last_node_text` through `segment_text`.

    Unlike fragment generation, failures propagate so a streaming run halts at
    the failing segment instead of silently skipping it.

    Raises:
        ConfigurationError: If no completion API key is configured.
        ProviderError: If the completion call fails after retries.
        MalformedOutputError: If the output is unparseable or contains no nodes.
    """
    logger.info("generate_follow_up_nodes: starting", segment_length=len(segment_text))

    system_instruction = render_system_prompt(
        "follow_up",
        {
            "characters": characters,
            "scenes": scenes,
            "last_node_text": last_node_text,
            "min_nodes": MIN_FOLLOW_UP_NODES,
            "max_nodes": MAX_FOLLOW_UP_NODES,
        },
    )
    user_content = render_prompt("follow_up/user.j2", {"segment_text": segment_text})

    response = await with_retry(
        lambda: llm_service.complete(
            system_instruction,
            user_content,
            model_name=config.FOLLOW_UP_MODEL,
            temperature=config.TEMPERATURE_FOLLOW_UP,
            top_p=config.FOLLOW_UP_TOP_P,
            max_tokens=config.MAX_FOLLOW_UP_TOKENS,
        ),
        operation_name="follow-up generation",
    )

    nodes = parse_fragment_response(response)
    if not nodes:
        raise MalformedOutputError("Follow-up response contained no nodes", snippet=response[:300])

    if not MIN_FOLLOW_UP_NODES <= len(nodes) <= MAX_FOLLOW_UP_NODES:
        logger.warning(
            "generate_follow_up_nodes: node count outside requested range",
            nodes=len(nodes),
            expected=f"{MIN_FOLLOW_UP_NODES}-{MAX_FOLLOW_UP_NODES}",
        )

    logger.info("generate_follow_up_nodes: nodes generated", nodes=len(nodes))
    return nodes
