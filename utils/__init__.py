# utils/__init__.py
"""General utility functions for the Galforge pipeline."""

from .json_utils import (
    extract_json_candidates_from_response,
    repair_truncated_json,
    strip_code_fences,
    truncate_for_log,
    try_load_json_from_response,
)

__all__ = [
    "extract_json_candidates_from_response",
    "repair_truncated_json",
    "strip_code_fences",
    "truncate_for_log",
    "try_load_json_from_response",
]
