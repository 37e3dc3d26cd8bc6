# prompts/prompt_renderer.py
"""Render the Jinja2 prompts of the three generation stages.

Each stage owns a directory (`outline_generator/`, `fragment_generator/`,
`follow_up/`) holding a `user.j2` template and either a static `system.md` or
a `system.j2` template that embeds the cast, scenes or beats.

Templates render with `StrictUndefined`, so a missing variable raises
`jinja2.UndefinedError` instead of producing a silently incomplete prompt.
Story text is inserted verbatim (no autoescaping). The `config` module is
available to every template as `config`.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

import config

PROMPTS_PATH = Path(__file__).parent


@lru_cache(maxsize=1)
def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(PROMPTS_PATH),
        autoescape=False,
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=False,
    )


def render_prompt(template_name: str, context: dict[str, Any]) -> str:
    """Render `template_name` (relative to this package) and strip the result.

    Raises:
        jinja2.TemplateNotFound: If the template does not exist.
        jinja2.UndefinedError: If the template uses a variable missing from `context`.
    """
    template = _environment().get_template(template_name)
    return template.render({"config": config, **context}).strip()


@lru_cache(maxsize=16)
def get_system_prompt(stage_name: str) -> str:
    """Static `system.md` of a stage, or "" when the stage has none. Cached."""
    path = PROMPTS_PATH / stage_name / "system.md"
    return path.read_text(encoding="utf-8").strip() if path.is_file() else ""


def render_system_prompt(stage_name: str, context: dict[str, Any]) -> str:
    if (PROMPTS_PATH / stage_name / "system.j2").is_file():
        return render_prompt(f"{stage_name}/system.j2", context)
    return get_system_prompt(stage_name)
