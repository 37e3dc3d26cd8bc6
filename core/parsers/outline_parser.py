# core/parsers/outline_parser.py
"""Turn raw outline completions into a validated `StoryOutline`.

The outline model is asked for a single JSON object, but nothing about its
output is trusted. Parsing is a pure transform: salvage the JSON object, then
normalize every field so downstream stages never see a missing
array or a non-string id.
"""

from __future__ import annotations

from typing import Any

import structlog

import config
from core.exceptions import MalformedOutputError
from models.script_models import Character, Scene, StoryBeat, StoryOutline
from utils.json_utils import truncate_for_log, try_load_json_from_response

logger = structlog.get_logger(__name__)


def _pick(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _as_id(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return str(int(value)) if float(value).is_integer() else str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value.strip() if isinstance(value, str) else str(value)


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _normalize_characters(raw_characters: list[Any]) -> list[Character]:
    characters: list[Character] = []
    seen: set[str] = set()
    for entry in raw_characters:
        if not isinstance(entry, dict):
            continue
        character_id = _as_id(entry.get("id"))
        if character_id is None:
            logger.debug("Dropping outline character without id", entry=truncate_for_log(str(entry), 120))
            continue
        if character_id in seen:
            continue
        seen.add(character_id)
        theme_color = _pick(entry, "themeColor", "theme_color")
        characters.append(
            Character(
                id=character_id,
                name=_as_text(entry.get("name")) or character_id,
                description=_as_text(entry.get("description")),
                visual_traits=_as_text(_pick(entry, "visualTraits", "visual_traits", default="")),
                theme_color=_as_text(theme_color) or None,
            )
        )
    return characters


def _normalize_scenes(raw_scenes: list[Any]) -> list[Scene]:
    scenes: list[Scene] = []
    seen: set[str] = set()
    for entry in raw_scenes:
        if not isinstance(entry, dict):
            continue
        scene_id = _as_id(entry.get("id"))
        if scene_id is None or scene_id in seen:
            continue
        seen.add(scene_id)
        scenes.append(
            Scene(
                id=scene_id,
                description=_as_text(entry.get("description")),
                mood=_as_text(entry.get("mood")),
                visual_prompt=_as_text(_pick(entry, "visualPrompt", "visual_prompt", default="")),
            )
        )
    return scenes


def _normalize_beats(raw_beats: list[Any]) -> list[StoryBeat]:
    beats: list[StoryBeat] = []
    seen: set[str] = set()
    for index, entry in enumerate(raw_beats, start=1):
        if isinstance(entry, str):
            entry = {"summary": entry}
        if not isinstance(entry, dict):
            continue
        summary = _as_text(_pick(entry, "summary", "description", default=""))
        if not summary:
            continue
        # Beat order carries meaning, so a missing id is synthesized from position.
        beat_id = _as_id(entry.get("id")) or f"beat_{index}"
        if beat_id in seen:
            beat_id = f"{beat_id}_{index}"
        seen.add(beat_id)
        required = [cid for cid in (_as_id(c) for c in _as_list(_pick(entry, "requiredCharacters", "required_characters", default=[]))) if cid]
        beats.append(
            StoryBeat(
                id=beat_id,
                summary=summary,
                location_id=_as_id(_pick(entry, "locationId", "location_id")) or "",
                required_characters=required,
            )
        )
    return beats


def normalize_outline(data: dict[str, Any]) -> StoryOutline:
    """Build a `StoryOutline` from a parsed JSON object.

    Missing arrays become empty lists, a missing title becomes the configured
    default, numeric ids are coerced to strings, entities without ids are
    dropped and duplicate ids keep their first occurrence.
    """
    outline = StoryOutline(
        title=_as_text(data.get("title")) or config.DEFAULT_SCRIPT_TITLE,
        synopsis=_as_text(data.get("synopsis")),
        beats=_normalize_beats(_as_list(data.get("beats"))),
        characters=_normalize_characters(_as_list(data.get("characters"))),
        scenes=_normalize_scenes(_as_list(data.get("scenes"))),
    )
    logger.debug(
        "Outline normalized",
        beats=len(outline.beats),
        characters=len(outline.characters),
        scenes=len(outline.scenes),
    )
    return outline


def parse_outline_response(raw_text: str) -> StoryOutline:
    """Salvage and normalize an outline completion.

    Raises:
        MalformedOutputError: If no JSON object can be recovered.
    """
    parsed, _candidates, errors = try_load_json_from_response(raw_text, expected_root=dict, wrapper_keys=("outline",))
    if not isinstance(parsed, dict):
        logger.error("Outline response is not a JSON object", errors=errors[:3], snippet=truncate_for_log(raw_text))
        raise MalformedOutputError(
            "Outline response could not be parsed as a JSON object",
            details={"parse_errors": errors[:3]},
            snippet=truncate_for_log(raw_text),
        )
    return normalize_outline(parsed)
