# orchestration/script_orchestrator.py
"""Drive the script-generation graphs and translate their updates into events.

The orchestrator is the only place that knows about progress reporting. Graph
nodes return state updates; this module consumes them through `astream()` and
publishes [`PhaseProgress`](core/progress.py:37) (single-shot),
[`SegmentProgress`](core/progress.py:46) (streaming) and
[`ScriptChunk`](models/script_models.py:1) events.

Error policy:
    - A fatal error recorded in graph state is re-raised here as the original
      `GalforgeError`.
    - In streaming mode any failure is wrapped in `StreamingAbortedError`
      carrying the script assembled from completed segments.
    - Asset back-fill never raises for individual assets.
"""

from __future__ import annotations

from typing import Any

import structlog

from core.asset_backfill import ImageProvider, backfill_assets
from core.exceptions import GalforgeError, StreamingAbortedError
from core.langgraph.state import ScriptState, create_initial_state
from core.langgraph.workflow import create_single_shot_workflow_graph, create_streaming_workflow_graph
from core.progress import Phase, PhaseProgress, ProgressChannel, SegmentProgress, SegmentStatus
from core.script_assembler import close_tail, normalize_script
from models.script_models import GalgameScript, ScriptChunk
from processing.segmenter import split_story_into_segments

logger = structlog.get_logger(__name__)

# Each fragment and each segment is one graph step; keep headroom for long stories.
GRAPH_RECURSION_LIMIT = 1000


class ScriptOrchestrator:
    """Convert a story into a script, in one pass or segment by segment."""

    def __init__(
        self,
        progress: ProgressChannel | None = None,
        image_provider: ImageProvider | None = None,
    ) -> None:
        self.progress = progress or ProgressChannel()
        self.image_provider = image_provider

    async def convert(
        self,
        story_text: str,
        *,
        generate_assets: bool = False,
        streaming: bool | None = None,
    ) -> GalgameScript:
        """Convert `story_text` into a complete script.

        Args:
            story_text: Prose to adapt.
            generate_assets: Whether to back-fill scene and visual-spec images.
            streaming: Force streaming on or off. By default streaming is used
                whenever the text splits into more than one segment.

        Returns:
            The final, normalized script.

        Raises:
            GalforgeError: On empty input or any fatal generation failure.
            StreamingAbortedError: When a streaming run halts mid-way.
        """
        segments = split_story_into_segments(story_text)
        if not segments:
            raise GalforgeError("Story text is empty")

        use_streaming = len(segments) > 1 if streaming is None else streaming
        logger.info(
            "Starting script conversion",
            characters=len(story_text),
            segments=len(segments),
            streaming=use_streaming,
        )

        if use_streaming:
            script = await self._run_streaming(segments)
        else:
            script = await self._run_single_shot("\n\n".join(segments))

        if generate_assets:
            script = await backfill_assets(script, self._resolve_image_provider(), self.progress)

        logger.info(
            "Script conversion complete",
            title=script.title,
            nodes=len(script.nodes),
            characters=len(script.characters),
            scenes=len(script.scenes),
        )
        return script

    def _resolve_image_provider(self) -> ImageProvider:
        if self.image_provider is None:
            from core.image_service import image_service

            self.image_provider = image_service
        return self.image_provider

    async def _run_single_shot(self, story_text: str) -> GalgameScript:
        graph = create_single_shot_workflow_graph()
        state: ScriptState = create_initial_state(story_text=story_text)

        await self.progress.publish(PhaseProgress(phase=Phase.OUTLINE, current=0, total=1, message="Generating outline"))

        async for event in graph.astream(
            state,
            config={"recursion_limit": GRAPH_RECURSION_LIMIT},
            stream_mode="updates",
        ):
            for node_name, state_update in self._iter_updates(event):
                state = {**state, **state_update}
                await self._handle_single_shot_event(node_name, state)

        self._raise_on_fatal(state)
        script = state.get("script")
        if script is None:
            raise GalforgeError("Workflow finished without producing a script")
        return script

    async def _handle_single_shot_event(self, node_name: str, state: ScriptState) -> None:
        if state.get("has_fatal_error"):
            return

        total = len(state.get("fragment_batches", []))
        if node_name == "generate_outline":
            outline = state.get("outline")
            await self.progress.publish(
                PhaseProgress(
                    phase=Phase.OUTLINE,
                    current=1,
                    total=1,
                    message=f"Outline ready: {outline.title}" if outline else "Outline ready",
                )
            )
            await self.progress.publish(PhaseProgress(phase=Phase.CHUNKS, current=0, total=total))
        elif node_name == "generate_fragment":
            current = state.get("current_fragment_index", 0)
            await self.progress.publish(
                PhaseProgress(
                    phase=Phase.CHUNKS,
                    current=current,
                    total=total,
                    message=f"Generated fragment {current}/{total}",
                )
            )
        elif node_name == "assemble_script":
            script = state.get("script")
            await self.progress.publish(
                PhaseProgress(
                    phase=Phase.CHUNKS,
                    current=total,
                    total=total,
                    message=f"Assembled {len(script.nodes)} nodes" if script else "",
                )
            )

    async def _run_streaming(self, segments: list[str]) -> GalgameScript:
        total_segments = len(segments)
        graph = create_streaming_workflow_graph()
        state: ScriptState = create_initial_state(story_text=segments[0], segments=segments, open_tail=True)

        await self._publish_segment(1, total_segments, SegmentStatus.LOADING, "Generating outline")

        try:
            async for event in graph.astream(
                state,
                config={"recursion_limit": GRAPH_RECURSION_LIMIT},
                stream_mode="updates",
                subgraphs=True,
            ):
                namespace, payload = event if isinstance(event, tuple) else ((), event)
                for node_name, state_update in self._iter_updates(payload):
                    if namespace:
                        logger.debug("Segment 1 step complete", node=node_name)
                        continue
                    state = {**state, **state_update}
                    await self._handle_streaming_event(node_name, state, total_segments)

            self._raise_on_fatal(state)
        except GalforgeError as e:
            await self._abort_stream(state, total_segments, e)

        script = state.get("script")
        if script is None:
            raise GalforgeError("Streaming workflow finished without producing a script")
        return script

    async def _handle_streaming_event(self, node_name: str, state: ScriptState, total_segments: int) -> None:
        if state.get("has_fatal_error"):
            return

        index = state.get("current_segment_index", 0)
        if node_name == "first_segment":
            script = state.get("script")
            if script is None:
                return
            await self.progress.publish_chunk(
                ScriptChunk(segment=1, nodes=list(script.nodes), is_initial=True, script=script)
            )
            await self._publish_segment(1, total_segments, SegmentStatus.COMPLETE, script.title)
        elif node_name == "begin_segment":
            await self._publish_segment(index + 1, total_segments, SegmentStatus.LOADING)
        elif node_name == "follow_up":
            new_nodes = state.get("last_chunk_nodes", [])
            await self.progress.publish_chunk(ScriptChunk(segment=index + 1, nodes=list(new_nodes)))
            await self._publish_segment(
                index + 1,
                total_segments,
                SegmentStatus.COMPLETE,
                f"Added {len(new_nodes)} nodes",
            )

    async def _abort_stream(self, state: ScriptState, total_segments: int, cause: GalforgeError) -> None:
        failed_segment = state.get("current_segment_index", 0) + 1
        await self._publish_segment(failed_segment, total_segments, SegmentStatus.ERROR, str(cause))

        partial_script = None
        script = state.get("script")
        if failed_segment > 1 and script is not None and script.nodes:
            partial_script = normalize_script(script.model_copy(update={"nodes": close_tail(script.nodes)}))

        logger.error(
            "Streaming conversion aborted",
            failed_segment=failed_segment,
            total_segments=total_segments,
            partial_nodes=len(partial_script.nodes) if partial_script else 0,
            error=str(cause),
        )
        raise StreamingAbortedError(
            f"Streaming stopped at segment {failed_segment} of {total_segments}",
            details={"cause": cause.message},
            failed_segment=failed_segment,
            partial_script=partial_script,
        ) from cause

    async def _publish_segment(self, current: int, total: int, status: SegmentStatus, message: str = "") -> None:
        await self.progress.publish(
            SegmentProgress(current_segment=current, total_segments=total, status=status, message=message)
        )

    @staticmethod
    def _iter_updates(event: Any) -> list[tuple[str, dict[str, Any]]]:
        """Return `(node_name, update)` pairs of an updates-mode event."""
        if not isinstance(event, dict):
            return []
        return [
            (node_name, state_update)
            for node_name, state_update in event.items()
            if not node_name.startswith("__") and isinstance(state_update, dict)
        ]

    @staticmethod
    def _raise_on_fatal(state: ScriptState) -> None:
        if not state.get("has_fatal_error"):
            return
        logger.error(
            "Workflow terminated with fatal error",
            error=state.get("last_error"),
            node=state.get("error_node"),
        )
        exception = state.get("fatal_exception")
        if isinstance(exception, GalforgeError):
            raise exception
        raise GalforgeError(
            state.get("last_error") or "Workflow failed",
            details={"node": state.get("error_node")},
        )
