# tests/test_script_orchestrator.py
from unittest.mock import AsyncMock, patch

import pytest

import config
from core.exceptions import ConfigurationError, GalforgeError, ProviderError, StreamingAbortedError
from core.progress import Phase, PhaseProgress, ProgressChannel, SegmentProgress, SegmentStatus
from orchestration.script_orchestrator import ScriptOrchestrator

THREE_PARAGRAPHS = "\n\n".join(["A" * 90, "B" * 90, "C" * 90])


class _RecordingSinks:
    def __init__(self, channel: ProgressChannel) -> None:
        self.events: list = []
        self.chunks: list = []
        channel.subscribe(self.events.append)
        channel.subscribe_chunks(self.chunks.append)

    def segment_statuses(self) -> list[tuple[int, SegmentStatus]]:
        return [(e.current_segment, e.status) for e in self.events if isinstance(e, SegmentProgress)]


@pytest.fixture
def small_segments(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "STORY_SEGMENT_THRESHOLD", 100)
    monkeypatch.setattr(config, "SEGMENT_SIZE", 100)


@pytest.fixture
def patched_single_shot(sample_outline, fragment_factory):
    first = fragment_factory(("local_1", None, "One.", ["NEXT"]), ("local_2", "aki", "Two.", ["END_OF_FRAGMENT"]))
    with (
        patch("core.langgraph.nodes.outline_node.generate_outline", AsyncMock(return_value=sample_outline)) as outline,
        patch("core.langgraph.nodes.fragment_node.generate_fragment", AsyncMock(return_value=first)) as fragment,
    ):
        yield outline, fragment


@pytest.mark.asyncio
class TestSingleShotConversion:
    async def test_phase_progress_is_reported(self, patched_single_shot) -> None:
        channel = ProgressChannel()
        sinks = _RecordingSinks(channel)

        script = await ScriptOrchestrator(progress=channel).convert("A short story.")

        assert [node.id for node in script.nodes] == ["node_1", "node_2"]
        assert script.nodes[-1].is_ending is True
        phases = [(e.phase, e.current, e.total) for e in sinks.events if isinstance(e, PhaseProgress)]
        assert phases == [
            (Phase.OUTLINE, 0, 1),
            (Phase.OUTLINE, 1, 1),
            (Phase.CHUNKS, 0, 1),
            (Phase.CHUNKS, 1, 1),
            (Phase.CHUNKS, 1, 1),
        ]
        assert sinks.chunks == []

    async def test_fatal_error_is_reraised(self) -> None:
        with patch(
            "core.langgraph.nodes.outline_node.generate_outline",
            AsyncMock(side_effect=ConfigurationError("no key")),
        ):
            with pytest.raises(ConfigurationError):
                await ScriptOrchestrator().convert("A short story.")

    async def test_empty_story_is_rejected(self) -> None:
        with pytest.raises(GalforgeError):
            await ScriptOrchestrator().convert("   ")

    async def test_assets_are_backfilled_when_requested(self, patched_single_shot) -> None:
        provider = AsyncMock()
        provider.generate = AsyncMock(return_value="http://img/station.png")
        channel = ProgressChannel()

        script = await ScriptOrchestrator(progress=channel, image_provider=provider).convert(
            "A short story.",
            generate_assets=True,
        )

        assert script.scenes[0].image_url == "http://img/station.png"
        assert any(isinstance(e, PhaseProgress) and e.phase is Phase.ASSETS for e in channel.history)


@pytest.mark.asyncio
class TestStreamingConversion:
    async def test_streaming_relinks_tail_and_emits_chunks(self, small_segments, patched_single_shot, fragment_factory) -> None:
        follow_ups = [
            fragment_factory(("local_1", None, "Three.", ["NEXT"]), ("local_2", None, "Four.", ["END_OF_FRAGMENT"])),
            fragment_factory(("local_1", "ren", "Five.", ["NEXT"]), ("local_2", None, "Six.", ["END_OF_FRAGMENT"])),
        ]
        channel = ProgressChannel()
        sinks = _RecordingSinks(channel)

        with patch("core.langgraph.nodes.segment_nodes.generate_follow_up_nodes", AsyncMock(side_effect=follow_ups)) as mock_follow_up:
            script = await ScriptOrchestrator(progress=channel).convert(THREE_PARAGRAPHS)

        # Segment 1 runs the single-shot pipeline on its own text only.
        _outline, fragment = patched_single_shot
        assert fragment.await_args.args[0] == "A" * 90
        assert [call.args[3] for call in mock_follow_up.await_args_list] == ["B" * 90, "C" * 90]

        assert script.get_node("node_2").choices[0].next_node_id == "seg2_node_1"
        assert script.get_node("seg2_node_2").choices[0].next_node_id == "seg3_node_1"
        assert script.nodes[-1].id == "seg3_node_2"
        assert script.nodes[-1].is_ending is True
        assert script.start_node_id == "node_1"

        assert sinks.segment_statuses() == [
            (1, SegmentStatus.LOADING),
            (1, SegmentStatus.COMPLETE),
            (2, SegmentStatus.LOADING),
            (2, SegmentStatus.COMPLETE),
            (3, SegmentStatus.LOADING),
            (3, SegmentStatus.COMPLETE),
        ]
        assert [(chunk.segment, chunk.is_initial) for chunk in sinks.chunks] == [(1, True), (2, False), (3, False)]
        assert sinks.chunks[0].script is not None
        assert [node.id for node in sinks.chunks[1].nodes] == ["seg2_node_1", "seg2_node_2"]

    async def test_mid_stream_failure_carries_partial_script(self, small_segments, patched_single_shot, fragment_factory) -> None:
        follow_ups = [
            fragment_factory(("local_1", None, "Three.", ["END_OF_FRAGMENT"])),
            ProviderError("down"),
        ]
        channel = ProgressChannel()
        sinks = _RecordingSinks(channel)

        with patch("core.langgraph.nodes.segment_nodes.generate_follow_up_nodes", AsyncMock(side_effect=follow_ups)):
            with pytest.raises(StreamingAbortedError) as exception_info:
                await ScriptOrchestrator(progress=channel).convert(THREE_PARAGRAPHS)

        error = exception_info.value
        assert error.failed_segment == 3
        assert isinstance(error.__cause__, ProviderError)
        partial = error.partial_script
        assert [node.id for node in partial.nodes] == ["node_1", "node_2", "seg2_node_1"]
        assert partial.nodes[-1].is_ending is True
        assert partial.nodes[-1].choices == []
        assert sinks.segment_statuses()[-1] == (3, SegmentStatus.ERROR)
        assert len(sinks.chunks) == 2

    async def test_first_segment_failure_has_no_partial_script(self, small_segments) -> None:
        with patch(
            "core.langgraph.nodes.outline_node.generate_outline",
            AsyncMock(side_effect=ProviderError("down")),
        ):
            with pytest.raises(StreamingAbortedError) as exception_info:
                await ScriptOrchestrator().convert(THREE_PARAGRAPHS)

        assert exception_info.value.failed_segment == 1
        assert exception_info.value.partial_script is None

    async def test_streaming_can_be_forced_off(self, small_segments, patched_single_shot) -> None:
        channel = ProgressChannel()
        sinks = _RecordingSinks(channel)

        await ScriptOrchestrator(progress=channel).convert(THREE_PARAGRAPHS, streaming=False)

        outline_mock, _fragment = patched_single_shot
        assert outline_mock.await_args.args[0] == THREE_PARAGRAPHS
        assert sinks.segment_statuses() == []
