# core/langgraph/nodes/__init__.py
"""LangGraph node entrypoints for script generation."""

from core.langgraph.nodes.assemble_script_node import assemble_script
from core.langgraph.nodes.fragment_node import generate_next_fragment
from core.langgraph.nodes.outline_node import generate_script_outline
from core.langgraph.nodes.segment_nodes import (
    begin_segment,
    finalize_streamed_script,
    generate_segment_follow_up,
)

__all__ = [
    "assemble_script",
    "begin_segment",
    "finalize_streamed_script",
    "generate_next_fragment",
    "generate_script_outline",
    "generate_segment_follow_up",
]
