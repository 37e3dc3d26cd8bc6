# processing/segmenter.py
"""Split long stories into segments for streaming generation.

A story at or under `config.STORY_SEGMENT_THRESHOLD` characters is processed in
one pass. Longer stories are cut into segments of roughly
`config.SEGMENT_SIZE` characters, preferring a paragraph break, then a
sentence terminator, and only then a hard cut.
"""

import structlog

import config

logger = structlog.get_logger(__name__)

PARAGRAPH_BREAK = "\n\n"
SENTENCE_TERMINATORS = frozenset("。！？!?.…")
PARAGRAPH_WINDOW = 500
SENTENCE_WINDOW = 200


def should_use_streaming(text: str) -> bool:
    """Return True when `text` is long enough to be generated segment by segment."""
    return len(text) > config.STORY_SEGMENT_THRESHOLD


def _find_sentence_end(text: str, start: int, limit: int) -> int:
    for index in range(max(start, 0), min(limit + 1, len(text))):
        if text[index] in SENTENCE_TERMINATORS:
            return index
    return -1


def _find_cut_point(text: str, segment_size: int) -> tuple[int, str]:
    """Return `(end, strategy)` where `text[:end]` is the next segment."""
    paragraph_at = text.find(PARAGRAPH_BREAK, max(segment_size - PARAGRAPH_WINDOW, 0))
    if paragraph_at != -1 and paragraph_at <= segment_size + PARAGRAPH_WINDOW:
        return paragraph_at, "paragraph"

    sentence_at = _find_sentence_end(text, segment_size - SENTENCE_WINDOW, segment_size + SENTENCE_WINDOW)
    if sentence_at != -1:
        # The terminator stays with the left segment.
        return sentence_at + 1, "sentence"

    return segment_size, "hard"


def split_story_into_segments(text: str) -> list[str]:
    """Split `text` into ordered, trimmed segments.

    Deterministic and total: every character of the input (apart from trimmed
    whitespace) ends up in exactly one segment, in order. A small trailing
    remainder is still emitted as its own segment.

    Args:
        text: Full story text.

    Returns:
        A list of segments; a single segment when the text is not longer than
        the streaming threshold, and an empty list for blank input.
    """
    normalized = (text or "").replace("\r\n", "\n")
    if not normalized.strip():
        return []
    if not should_use_streaming(normalized):
        return [normalized.strip()]

    segment_size = config.SEGMENT_SIZE
    segments: list[str] = []
    remaining = normalized.strip()

    while len(remaining) > segment_size:
        cut, strategy = _find_cut_point(remaining, segment_size)
        segment = remaining[:cut].strip()
        if segment:
            segments.append(segment)
        logger.debug("Story segment cut", segment=len(segments), strategy=strategy, length=len(segment))
        remaining = remaining[cut:].strip()

    if remaining:
        segments.append(remaining)

    logger.info("Story split into segments", total_chars=len(normalized), segments=len(segments))
    return segments
