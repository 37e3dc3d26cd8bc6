"""Parsers that turn untrusted completion text into validated models."""

from .fragment_parser import normalize_character_id, normalize_fragment_nodes, parse_fragment_response
from .outline_parser import normalize_outline, parse_outline_response

__all__ = [
    "normalize_character_id",
    "normalize_fragment_nodes",
    "normalize_outline",
    "parse_fragment_response",
    "parse_outline_response",
]
