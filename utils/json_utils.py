# utils/json_utils.py
"""JSON salvage helpers for model output.

Completion responses are untrusted: they may be wrapped in markdown fences,
surrounded by commentary, or cut off mid-document when the output token ceiling
is reached. These helpers extract the most plausible JSON value and, as a last
resort, repair a truncated document by cutting it back to the last complete
element and closing the open containers.
"""

from __future__ import annotations

import json
import re
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

_JSON_FENCE_PATTERN = re.compile(
    r"```(?:json)?\s*\n?(.*?)\n?```",
    flags=re.DOTALL | re.IGNORECASE,
)
_OPEN_FENCE_PATTERN = re.compile(r"^\s*```(?:json)?\s*\n?", flags=re.IGNORECASE)

_CLOSERS = {"{": "}", "[": "]"}


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, tolerating a missing closer."""
    if not isinstance(text, str):
        return ""
    match = _JSON_FENCE_PATTERN.search(text)
    if match:
        return (match.group(1) or "").strip()
    return _OPEN_FENCE_PATTERN.sub("", text, count=1).strip()


def _first_container_index(text: str) -> int | None:
    positions = [i for i in (text.find("{"), text.find("[")) if i != -1]
    return min(positions) if positions else None


def _extract_balanced_json_substring(text: str) -> str | None:
    if not isinstance(text, str) or not text:
        return None

    start_pos = _first_container_index(text)
    if start_pos is None:
        return None

    stack: list[str] = []
    in_string = False
    escape = False
    for idx, ch in enumerate(text[start_pos:], start=start_pos):
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(ch)
        elif ch in ("}", "]"):
            if not stack or _CLOSERS[stack.pop()] != ch:
                return None
            if not stack:
                candidate = text[start_pos : idx + 1]
                return candidate if candidate.strip() else None

    return None


def repair_truncated_json(text: str) -> str | None:
    """Close a JSON document that was cut off mid-stream.

    The document is cut back to just after the last complete object or array
    and the containers still open at that point are closed. A document that is
    already complete is returned unchanged (without surrounding text).

    Returns:
        A candidate JSON string, or `None` when no complete element exists.
    """
    if not isinstance(text, str) or not text:
        return None

    start_pos = _first_container_index(text)
    if start_pos is None:
        return None

    stack: list[str] = []
    in_string = False
    escape = False
    cut_at: int | None = None
    cut_stack: list[str] = []

    for idx, ch in enumerate(text[start_pos:], start=start_pos):
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(ch)
        elif ch in ("}", "]"):
            if not stack or _CLOSERS[stack[-1]] != ch:
                return None
            stack.pop()
            if not stack:
                return text[start_pos : idx + 1]
            cut_at = idx + 1
            cut_stack = list(stack)

    if cut_at is None:
        return None

    closers = "".join(_CLOSERS[opening] for opening in reversed(cut_stack))
    return text[start_pos:cut_at] + closers


def extract_json_candidates_from_response(response: str) -> list[tuple[str, str]]:
    """
    Extract candidate JSON strings from a possibly-chatty LLM response.

    Supports:
    - Pure JSON (object or list)
    - JSON in markdown fences ```json ... ```, including an unclosed fence
    - Embedded valid JSON preceded/followed by commentary (via JSONDecoder.raw_decode)
    - Balanced-bracket substring salvage
    - Truncated documents, closed after their last complete element

    Returns a list of (source, json_string) candidates, ordered from most likely
    to least likely, de-duplicated while preserving order.
    """
    text = (response or "").strip()
    if not text:
        return []

    candidates: list[tuple[str, str]] = [("raw", text)]

    for i, match in enumerate(_JSON_FENCE_PATTERN.finditer(text), start=1):
        block = (match.group(1) or "").strip()
        if block:
            candidates.append((f"fence[{i}]", block))

    unfenced = strip_code_fences(text)
    if unfenced and unfenced != text:
        candidates.append(("unfenced", unfenced))

    balanced = _extract_balanced_json_substring(text)
    if balanced:
        candidates.append(("balanced_substring", balanced))

    repaired = repair_truncated_json(unfenced or text)
    if repaired:
        candidates.append(("truncation_repair", repaired))

    decoder = json.JSONDecoder()
    for match in re.finditer(r"[\{\[]", text):
        index = match.start()
        try:
            _obj, end = decoder.raw_decode(text, index)
        except json.JSONDecodeError:
            continue
        snippet = text[index:end].strip()
        if snippet:
            candidates.append((f"raw_decode@{index}", snippet))
            break

    seen: set[str] = set()
    unique: list[tuple[str, str]] = []
    for source, candidate in candidates:
        if candidate in seen:
            continue
        seen.add(candidate)
        unique.append((source, candidate))

    return unique


def try_load_json_from_response(
    response: str,
    *,
    expected_root: type | tuple[type, ...] | None = None,
    wrapper_keys: tuple[str, ...] = (),
) -> tuple[Any | None, list[tuple[str, str]], list[str]]:
    """
    Try to parse JSON from an LLM response using multiple extraction strategies.

    Returns:
        (parsed_or_none, candidates_tried, parse_errors)

    Notes:
        - If wrapper_keys is provided and the parsed value is an object containing
          one of those keys, the value at that key is unwrapped.
        - If expected_root is provided, parsed values that don't match are rejected.
    """
    candidates = extract_json_candidates_from_response(response)
    if not candidates:
        return None, [], ["empty response"]

    parse_errors: list[str] = []
    for source, candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError as error:
            parse_errors.append(f"{source}: JSONDecodeError at pos {error.pos}: {error.msg}")
            continue

        if wrapper_keys and isinstance(parsed, dict):
            for wrapper_key in wrapper_keys:
                if wrapper_key in parsed:
                    parsed = parsed[wrapper_key]
                    break

        if expected_root is not None and not isinstance(parsed, expected_root):
            parse_errors.append(f"{source}: wrong root type {type(parsed).__name__} (expected {expected_root})")
            continue

        if source == "truncation_repair":
            logger.warning("Recovered JSON from a truncated response", original_length=len(response))
        return parsed, candidates, parse_errors

    return None, candidates, parse_errors


def truncate_for_log(s: str, limit: int = 300) -> str:
    """Return a truncated string for logging purposes."""
    if not isinstance(s, str):
        return ""
    return s if len(s) <= limit else s[:limit] + "..."
