"""LangGraph subgraphs for script generation."""

from core.langgraph.subgraphs.single_shot import create_single_shot_subgraph

__all__ = ["create_single_shot_subgraph"]
