# tests/test_langgraph/__init__.py
"""
LangGraph Test Suite.

Test Modules:
    - test_state: Tests for the state schema helpers
    - test_nodes: Tests for individual workflow nodes
    - test_workflow: Tests for the single-shot and streaming graphs

Run tests with:
    pytest tests/test_langgraph/ -v
"""
