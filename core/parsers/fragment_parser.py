# core/parsers/fragment_parser.py
"""Turn raw fragment completions into `FragmentNode` lists.

A fragment is a short run of nodes whose choices may point at placeholder
tokens (`NEXT`, `NEXT_PLACEHOLDER`, `END_OF_FRAGMENT`) instead of real ids.
This module parses those tokens into [`ChoiceTarget`](models/script_models.py:1)
values; the script assembler resolves them.
"""

from __future__ import annotations

from typing import Any

import structlog

import config
from core.exceptions import MalformedOutputError
from models.script_models import ChoiceTarget, FragmentChoice, FragmentNode, VisualSpec
from utils.json_utils import truncate_for_log, try_load_json_from_response

logger = structlog.get_logger(__name__)

NARRATION_IDS = frozenset({"", "narration", "narrator", "null", "none", "undefined"})


def normalize_character_id(value: Any) -> str | None:
    """Map the many spellings of "no speaker" to `None`."""
    if value is None:
        return None
    text = str(value).strip()
    if text.lower() in NARRATION_IDS:
        return None
    return text


def _normalize_choices(raw_choices: Any) -> list[FragmentChoice]:
    if not isinstance(raw_choices, list):
        return []
    choices: list[FragmentChoice] = []
    for entry in raw_choices:
        if not isinstance(entry, dict):
            continue
        text = entry.get("text")
        text = text.strip() if isinstance(text, str) else ""
        raw_target = entry.get("nextNodeId", entry.get("next_node_id"))
        mood_effect = entry.get("moodEffect", entry.get("mood_effect"))
        choices.append(
            FragmentChoice(
                text=text or config.CONTINUE_CHOICE_TEXT,
                target=ChoiceTarget.from_token(raw_target),
                mood_effect=str(mood_effect) if mood_effect else None,
            )
        )
    return choices


def _normalize_visual_spec(raw_spec: Any) -> VisualSpec | None:
    if isinstance(raw_spec, list):
        raw_spec = next((item for item in raw_spec if isinstance(item, dict)), None)
    if not isinstance(raw_spec, dict):
        return None
    description = str(raw_spec.get("description") or "").strip()
    visual_prompt = str(raw_spec.get("visualPrompt") or raw_spec.get("visual_prompt") or "").strip()
    if not (description or visual_prompt):
        return None
    spec_type = str(raw_spec.get("type") or "").strip().lower()
    return VisualSpec(
        type=spec_type if spec_type in ("item", "cg") else "cg",
        description=description,
        visual_prompt=visual_prompt or description,
    )


def _is_flag_set(raw_flag: Any) -> bool:
    if isinstance(raw_flag, str):
        return raw_flag.strip().lower() in ("true", "1", "yes")
    return raw_flag is True or raw_flag == 1


def normalize_fragment_nodes(items: list[Any]) -> list[FragmentNode]:
    """Validate raw node dicts into fragment nodes.

    Non-object entries are dropped. A node the model marks `isEnding` keeps its
    choices as given; any other node left without choices receives a
    single continuation: to the next node, or to the end of the fragment for
    the last node.
    """
    dict_items = [item for item in items if isinstance(item, dict)]
    if len(dict_items) != len(items):
        logger.debug("Dropped non-object fragment entries", dropped=len(items) - len(dict_items))

    nodes: list[FragmentNode] = []
    for index, item in enumerate(dict_items):
        raw_id = item.get("id")
        node_id = str(raw_id).strip() if raw_id is not None and str(raw_id).strip() else f"local_{index + 1}"
        text = item.get("text")
        scene_id = item.get("sceneId", item.get("scene_id"))

        choices = _normalize_choices(item.get("choices"))
        is_ending = _is_flag_set(item.get("isEnding", item.get("is_ending")))
        if not choices and not is_ending:
            is_last = index == len(dict_items) - 1
            target = ChoiceTarget.end_of_fragment() if is_last else ChoiceTarget.next_sibling()
            choices = [FragmentChoice(text=config.CONTINUE_CHOICE_TEXT, target=target)]

        nodes.append(
            FragmentNode(
                id=node_id,
                scene_id=str(scene_id).strip() if scene_id is not None else "",
                character_id=normalize_character_id(item.get("characterId", item.get("character_id"))),
                text=text if isinstance(text, str) else ("" if text is None else str(text)),
                choices=choices,
                is_ending=is_ending,
                visual_specs=_normalize_visual_spec(item.get("visualSpecs", item.get("visual_specs"))),
            )
        )
    return nodes


def parse_fragment_response(raw_text: str) -> list[FragmentNode]:
    """Salvage and normalize a fragment completion.

    Accepts a bare array of nodes or an object wrapping them under `nodes`.

    Raises:
        MalformedOutputError: If no node array can be recovered.
    """
    parsed, _candidates, errors = try_load_json_from_response(raw_text, expected_root=list, wrapper_keys=("nodes",))
    if not isinstance(parsed, list):
        logger.error("Fragment response has no node array", errors=errors[:3], snippet=truncate_for_log(raw_text))
        raise MalformedOutputError(
            "Fragment response could not be parsed as a node array",
            details={"parse_errors": errors[:3]},
            snippet=truncate_for_log(raw_text),
        )
    return normalize_fragment_nodes(parsed)
