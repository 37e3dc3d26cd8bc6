# config/validator.py
"""
Configuration validation utilities for Galforge.

`validate_all()` runs cross-field sanity checks that Pydantic field
constraints cannot express and returns a health report:

{
    "overall_health": "healthy" | "warning" | "error",
    "issues": {
        "errors":   [{ "field": "<field>", "message": "<msg>" }, ...],
        "warnings": [{ "field": "<field>", "message": "<msg>" }, ...],
        "info":     [{ "field": "<field>", "message": "<msg>" }, ...],
    }
}
"""

from __future__ import annotations

from .settings import GalforgeSettings
from .settings import settings as current_settings


def _add_issue(
    issues: dict[str, list[dict[str, str]]],
    severity: str,
    field: str,
    message: str,
) -> None:
    issues.setdefault(severity, []).append({"field": field, "message": message})


def validate_all(settings: GalforgeSettings | None = None) -> dict:
    """
    Validate a settings object (the process-wide one by default).

    Returns a health-report dict with overall status and detailed issue lists.
    """
    settings = settings or current_settings
    issues: dict[str, list[dict[str, str]]] = {"errors": [], "warnings": [], "info": []}

    if not settings.OPENAI_API_KEY:
        _add_issue(
            issues,
            "errors",
            "OPENAI_API_KEY",
            "No completion API key configured; every generation call will fail.",
        )
    if not settings.IMAGE_API_KEY:
        _add_issue(
            issues,
            "info",
            "IMAGE_API_KEY",
            "No image API key configured; asset back-fill will be skipped.",
        )

    # Boundary search windows reach 500 characters past a cut.
    if settings.SEGMENT_SIZE < 500:
        _add_issue(
            issues,
            "warnings",
            "SEGMENT_SIZE",
            f"SEGMENT_SIZE ({settings.SEGMENT_SIZE}) is smaller than the paragraph search window.",
        )

    for name in ("TEMPERATURE_OUTLINE", "TEMPERATURE_FRAGMENT", "TEMPERATURE_FOLLOW_UP"):
        value = getattr(settings, name)
        if not (0.0 <= value <= 2.0):
            _add_issue(
                issues,
                "warnings",
                name,
                f"{name} = {value} is outside the recommended range 0.0-2.0.",
            )

    for name in ("LLM_TOP_P", "FOLLOW_UP_TOP_P"):
        value = getattr(settings, name)
        if not (0.0 < value <= 1.0):
            _add_issue(issues, "errors", name, f"{name} must be in (0, 1]; got {value}.")

    positive_fields = [
        "LLM_RETRY_ATTEMPTS",
        "MAX_CONCURRENT_LLM_CALLS",
        "BEATS_PER_FRAGMENT",
        "IMAGE_POLL_MAX_ATTEMPTS",
    ]
    for name in positive_fields:
        value = getattr(settings, name)
        if value < 1:
            _add_issue(issues, "errors", name, f"{name} must be >= 1; got {value}.")

    overall = "healthy"
    if issues["errors"]:
        overall = "error"
    elif issues["warnings"]:
        overall = "warning"

    return {
        "overall_health": overall,
        "issues": issues,
    }
