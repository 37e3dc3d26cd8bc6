"""
Configuration settings for the Galforge script generation pipeline.
Uses Pydantic BaseSettings for automatic environment variable loading.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any

import structlog
from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

logger = structlog.get_logger()


class GalforgeSettings(BaseSettings):
    """Full configuration for the Galforge pipeline."""

    # Completion provider (OpenAI-compatible chat completions endpoint)
    OPENAI_API_BASE: str = "https://dashscope.aliyuncs.com/compatible-mode/v1"
    OPENAI_API_KEY: str = ""

    COMPLETION_MODEL: str = "qwen-plus"
    FOLLOW_UP_MODEL: str = "qwen-max"

    # Per-stage sampling settings
    TEMPERATURE_OUTLINE: float = 0.3
    TEMPERATURE_FRAGMENT: float = 0.3
    TEMPERATURE_FOLLOW_UP: float = 0.7
    LLM_TOP_P: float = 0.8
    FOLLOW_UP_TOP_P: float = 0.9

    MAX_OUTLINE_TOKENS: int = 2000
    MAX_FRAGMENT_TOKENS: int = 3000
    MAX_FOLLOW_UP_TOKENS: int = 3000

    # LLM Call Settings
    LLM_RETRY_ATTEMPTS: int = 3
    LLM_RETRY_DELAY_SECONDS: float = 1.0
    HTTPX_TIMEOUT: float = 120.0

    # Remote backends rate-limit aggressively; requests are strictly serialized.
    MAX_CONCURRENT_LLM_CALLS: int = 1

    # Segmentation
    STORY_SEGMENT_THRESHOLD: int = Field(5000, ge=1)
    SEGMENT_SIZE: int = Field(3000, ge=1)

    # Script generation
    BEATS_PER_FRAGMENT: int = 3
    CONTINUE_CHOICE_TEXT: str = "继续"
    SCRIPT_LANGUAGE: str = "Simplified Chinese"
    DEFAULT_SCRIPT_TITLE: str = "Untitled Script"
    STREAMED_SCRIPT_SYNOPSIS: str = "An interactive script generated from a multi-part story."

    # Image provider (DashScope-style async task API)
    IMAGE_API_BASE: str = "https://dashscope.aliyuncs.com"
    IMAGE_API_KEY: str = ""
    IMAGE_MODEL: str = "wanx-v1"
    IMAGE_SIZE: str = "1280*720"
    IMAGE_STYLE: str = "<auto>"
    IMAGE_POLL_INTERVAL_SECONDS: float = 2.0
    IMAGE_POLL_MAX_ATTEMPTS: int = 60

    # Output
    BASE_OUTPUT_DIR: str = "output"

    # Logging & UI
    LOG_LEVEL_STR: str = Field("INFO", alias="LOG_LEVEL")
    LOG_FILE: str | None = "galforge_run.log"
    ENABLE_RICH_PROGRESS: bool = True
    # Minimal logging mode: console only, no rotation/Rich
    SIMPLE_LOGGING_MODE: bool = False

    @model_validator(mode="after")
    def set_dynamic_defaults(self) -> GalforgeSettings:
        # Image generation runs on the same vendor account unless told otherwise.
        if not self.IMAGE_API_KEY and self.OPENAI_API_KEY:
            object.__setattr__(self, "IMAGE_API_KEY", self.OPENAI_API_KEY)
        # A segment boundary window must stay inside the streaming threshold.
        if self.SEGMENT_SIZE > self.STORY_SEGMENT_THRESHOLD:
            logger.warning(
                "SEGMENT_SIZE exceeds STORY_SEGMENT_THRESHOLD; clamping",
                segment_size=self.SEGMENT_SIZE,
                threshold=self.STORY_SEGMENT_THRESHOLD,
            )
            object.__setattr__(self, "SEGMENT_SIZE", self.STORY_SEGMENT_THRESHOLD)
        return self

    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", extra="ignore", populate_by_name=True
    )


settings = GalforgeSettings()


# Mirror every field as a module attribute.
for _field in GalforgeSettings.model_fields:
    globals()[_field] = getattr(settings, _field)


# Route structlog through stdlib logging so handlers in core.logging_config
# format both structlog events and plain stdlib records.
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="%H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

# Context values longer than this are shortened in log lines.
MAX_CONTEXT_VALUE_CHARS = 60

_LEVEL_STYLES = {
    "CRITICAL": "bold red",
    "ERROR": "red",
    "WARNING": "yellow",
    "INFO": "green",
}


def drop_private_keys(
    logger: Any, name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    for key in [k for k in event_dict if k.startswith("_")]:
        del event_dict[key]
    return event_dict


def _shorten(value: Any) -> str:
    text = str(value)
    if len(text) > MAX_CONTEXT_VALUE_CHARS:
        return text[: MAX_CONTEXT_VALUE_CHARS - 3] + "..."
    return text


def make_line_renderer(markup: bool):
    """Build a processor rendering one event as a single readable line.

    With `markup` the line carries Rich style tags for the console handler;
    without it the line is plain text for the log file.
    """

    def render(logger: Any, name: str, event_dict: MutableMapping[str, Any]) -> str:
        timestamp = event_dict.pop("timestamp", "")
        level = str(event_dict.pop("level", "info")).upper()
        source = str(event_dict.pop("logger", "")).rsplit(".", 1)[-1]
        event = str(event_dict.pop("event", ""))
        exception = event_dict.pop("exception", None)

        if markup:
            style = _LEVEL_STYLES.get(level)
            level_text = f"[{style}]{level}[/{style}]" if style else level
            source_text = f"[cyan]{source}[/cyan]" if source else ""
            event_text = f"[bold]{event}[/bold]"
            context = ", ".join(f"[dim]{k}[/dim]={_shorten(v)}" for k, v in event_dict.items())
        else:
            level_text = level
            source_text = f"[{source}]" if source else ""
            event_text = event
            context = ", ".join(f"{k}={_shorten(v)}" for k, v in event_dict.items())

        parts = [p for p in (timestamp, source_text, level_text, event_text) if p]
        if context:
            parts.append(f"({context})")
        line = " ".join(parts)
        if exception:
            line = f"{line}\n{exception}"
        return line

    return render


_foreign_pre_chain = [
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="%H:%M:%S"),
    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
]

simple_formatter = structlog.stdlib.ProcessorFormatter(
    foreign_pre_chain=_foreign_pre_chain,
    processors=[drop_private_keys, make_line_renderer(markup=False)],
)

rich_formatter = structlog.stdlib.ProcessorFormatter(
    foreign_pre_chain=_foreign_pre_chain,
    processors=[drop_private_keys, make_line_renderer(markup=True)],
)
