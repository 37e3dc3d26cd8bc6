"""Expose Galforge configuration as stable module-level constants.

This package provides a facade over the Pydantic settings model defined in
[`config.settings`](config/settings.py:1). The primary API is the `settings`
singleton plus a set of module-level constants mirroring its fields.

Configuration precedence and lifecycle:
- On initial import, configuration is loaded by importing `config.settings`,
  which constructs the `settings` singleton.
- Values come from the process environment and may be sourced from a `.env`
  file (see `config.settings` for import-time side effects).

Notes:
    Call sites read values as `config.NAME` at call time rather than binding them
    at import, so tests can override a single value with `monkeypatch.setattr`.
"""

from typing import Any

from .settings import (
    rich_formatter as rich_formatter,
)
from .settings import (
    settings as settings,
)
from .settings import (
    simple_formatter as simple_formatter,
)

BASE_OUTPUT_DIR = settings.BASE_OUTPUT_DIR
BEATS_PER_FRAGMENT = settings.BEATS_PER_FRAGMENT
COMPLETION_MODEL = settings.COMPLETION_MODEL
CONTINUE_CHOICE_TEXT = settings.CONTINUE_CHOICE_TEXT
DEFAULT_SCRIPT_TITLE = settings.DEFAULT_SCRIPT_TITLE
ENABLE_RICH_PROGRESS = settings.ENABLE_RICH_PROGRESS
FOLLOW_UP_MODEL = settings.FOLLOW_UP_MODEL
FOLLOW_UP_TOP_P = settings.FOLLOW_UP_TOP_P
HTTPX_TIMEOUT = settings.HTTPX_TIMEOUT
IMAGE_API_BASE = settings.IMAGE_API_BASE
IMAGE_API_KEY = settings.IMAGE_API_KEY
IMAGE_MODEL = settings.IMAGE_MODEL
IMAGE_POLL_INTERVAL_SECONDS = settings.IMAGE_POLL_INTERVAL_SECONDS
IMAGE_POLL_MAX_ATTEMPTS = settings.IMAGE_POLL_MAX_ATTEMPTS
IMAGE_SIZE = settings.IMAGE_SIZE
IMAGE_STYLE = settings.IMAGE_STYLE
LLM_RETRY_ATTEMPTS = settings.LLM_RETRY_ATTEMPTS
LLM_RETRY_DELAY_SECONDS = settings.LLM_RETRY_DELAY_SECONDS
LLM_TOP_P = settings.LLM_TOP_P
LOG_FILE = settings.LOG_FILE
LOG_LEVEL_STR = settings.LOG_LEVEL_STR
MAX_CONCURRENT_LLM_CALLS = settings.MAX_CONCURRENT_LLM_CALLS
MAX_FOLLOW_UP_TOKENS = settings.MAX_FOLLOW_UP_TOKENS
MAX_FRAGMENT_TOKENS = settings.MAX_FRAGMENT_TOKENS
MAX_OUTLINE_TOKENS = settings.MAX_OUTLINE_TOKENS
OPENAI_API_BASE = settings.OPENAI_API_BASE
OPENAI_API_KEY = settings.OPENAI_API_KEY
SCRIPT_LANGUAGE = settings.SCRIPT_LANGUAGE
SEGMENT_SIZE = settings.SEGMENT_SIZE
SIMPLE_LOGGING_MODE = settings.SIMPLE_LOGGING_MODE
STORY_SEGMENT_THRESHOLD = settings.STORY_SEGMENT_THRESHOLD
STREAMED_SCRIPT_SYNOPSIS = settings.STREAMED_SCRIPT_SYNOPSIS
TEMPERATURE_FOLLOW_UP = settings.TEMPERATURE_FOLLOW_UP
TEMPERATURE_FRAGMENT = settings.TEMPERATURE_FRAGMENT
TEMPERATURE_OUTLINE = settings.TEMPERATURE_OUTLINE


def get(key: str) -> Any:
    """Return the value of a configuration attribute from `settings`.

    Args:
        key: Attribute name on the `settings` singleton.

    Returns:
        The current value of the named attribute.

    Raises:
        AttributeError: If `key` is not a valid attribute on `settings`.
    """
    return getattr(settings, key)
