# core/langgraph/__init__.py
"""
Integrate script generation with LangGraph workflows.

This package re-exports the public workflow API (state schema and graph
builders) for use by the orchestrator and tests.
"""

from core.langgraph.state import ScriptState, State, create_initial_state
from core.langgraph.subgraphs.single_shot import create_single_shot_subgraph
from core.langgraph.workflow import (
    create_single_shot_workflow_graph,
    create_streaming_workflow_graph,
)

__all__ = [
    # State
    "ScriptState",
    "State",
    "create_initial_state",
    # Workflow
    "create_single_shot_subgraph",
    "create_single_shot_workflow_graph",
    "create_streaming_workflow_graph",
]
