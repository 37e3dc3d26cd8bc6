# core/progress.py
"""Progress and partial-result events.

Stages never call UI code. The orchestrator publishes typed events to a
[`ProgressChannel`](core/progress.py:1); any number of sinks (the Rich display,
a test recorder, a web socket) subscribe to it. A failing sink is logged and
skipped so it can never abort generation.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, Field

from models.script_models import ScriptChunk

logger = structlog.get_logger(__name__)


class Phase(str, Enum):
    OUTLINE = "OUTLINE"
    CHUNKS = "CHUNKS"
    ASSETS = "ASSETS"


class SegmentStatus(str, Enum):
    LOADING = "loading"
    COMPLETE = "complete"
    ERROR = "error"


class PhaseProgress(BaseModel):
    """Progress of a single-shot run."""

    phase: Phase
    current: int = 0
    total: int = 0
    message: str = ""


class SegmentProgress(BaseModel):
    """Progress of a streaming run, one event per segment transition."""

    current_segment: int = Field(ge=1)
    total_segments: int = Field(ge=1)
    status: SegmentStatus
    message: str = ""


ProgressEvent = PhaseProgress | SegmentProgress
Sink = Callable[[Any], Awaitable[None] | None]


class ProgressChannel:
    """Fan out progress events and script chunks to subscribed sinks."""

    def __init__(self) -> None:
        self._progress_sinks: list[Sink] = []
        self._chunk_sinks: list[Sink] = []
        self.history: list[ProgressEvent] = []

    def subscribe(self, callback: Callable[[ProgressEvent], Awaitable[None] | None]) -> None:
        """Register a progress sink; sync functions and coroutines are accepted."""
        self._progress_sinks.append(callback)

    def subscribe_chunks(self, callback: Callable[[ScriptChunk], Awaitable[None] | None]) -> None:
        """Register a sink for partial scripts emitted while streaming."""
        self._chunk_sinks.append(callback)

    async def publish(self, event: ProgressEvent) -> None:
        self.history.append(event)
        logger.debug("Progress event", event=event.model_dump(mode="json"))
        await self._dispatch(self._progress_sinks, event)

    async def publish_chunk(self, chunk: ScriptChunk) -> None:
        logger.debug("Script chunk", segment=chunk.segment, nodes=len(chunk.nodes), is_initial=chunk.is_initial)
        await self._dispatch(self._chunk_sinks, chunk)

    @staticmethod
    async def _dispatch(sinks: list[Sink], payload: Any) -> None:
        for sink in sinks:
            try:
                result = sink(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(
                    "Progress sink failed; continuing",
                    sink=getattr(sink, "__qualname__", repr(sink)),
                    error=str(e),
                    exc_info=True,
                )
