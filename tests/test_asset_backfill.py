# tests/test_asset_backfill.py
import pytest

from core.asset_backfill import backfill_assets
from core.exceptions import AssetTimeoutError, ConfigurationError, ProviderError
from core.progress import Phase, ProgressChannel
from models.script_models import GalgameScript, Scene, StoryNode, VisualSpec


class _ScriptedImageProvider:
    def __init__(self, outcomes: dict[str, str | Exception]) -> None:
        self.outcomes = outcomes
        self.prompts: list[str] = []

    async def generate(self, prompt: str, style: str | None = None) -> str:
        self.prompts.append(prompt)
        outcome = self.outcomes[prompt]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _script() -> GalgameScript:
    return GalgameScript(
        title="T",
        scenes=[
            Scene(id="s1", description="Station", visual_prompt="station prompt"),
            Scene(id="s2", description="Cafe", visual_prompt="cafe prompt"),
            Scene(id="s3", description="Roof"),
        ],
        nodes=[
            StoryNode(id="n1", scene_id="s1", visual_specs=VisualSpec(type="item", description="revolver", visual_prompt="revolver prompt")),
            StoryNode(id="n2", scene_id="s2", is_ending=True),
        ],
        start_node_id="n1",
    )


@pytest.mark.asyncio
class TestBackfillAssets:
    async def test_one_timeout_leaves_other_assets_populated(self) -> None:
        provider = _ScriptedImageProvider(
            {
                "station prompt": "http://img/s1.png",
                "cafe prompt": AssetTimeoutError("timed out"),
                "Roof": "http://img/s3.png",
                "revolver prompt": "http://img/item.png",
            }
        )
        script = _script()

        result = await backfill_assets(script, provider)

        assert [scene.image_url for scene in result.scenes] == ["http://img/s1.png", None, "http://img/s3.png"]
        assert result.nodes[0].visual_specs.image_url == "http://img/item.png"
        # Scenes without a visual prompt fall back to their description.
        assert "Roof" in provider.prompts
        # The input script is left untouched.
        assert all(scene.image_url is None for scene in script.scenes)

    async def test_provider_failures_are_swallowed_per_asset(self) -> None:
        provider = _ScriptedImageProvider(
            {
                "station prompt": ProviderError("failed task", retryable=False),
                "cafe prompt": "http://img/s2.png",
                "Roof": ProviderError("down"),
                "revolver prompt": "http://img/item.png",
            }
        )

        result = await backfill_assets(_script(), provider)

        assert [scene.image_url for scene in result.scenes] == [None, "http://img/s2.png", None]

    async def test_missing_credentials_skip_remaining_assets(self) -> None:
        provider = _ScriptedImageProvider({"station prompt": ConfigurationError("no key")})

        result = await backfill_assets(_script(), provider)

        assert provider.prompts == ["station prompt"]
        assert all(scene.image_url is None for scene in result.scenes)

    async def test_progress_is_published_per_asset(self) -> None:
        provider = _ScriptedImageProvider(
            {
                "station prompt": "a",
                "cafe prompt": "b",
                "Roof": "c",
                "revolver prompt": "d",
            }
        )
        channel = ProgressChannel()

        await backfill_assets(_script(), provider, channel)

        assert [(event.phase, event.current, event.total) for event in channel.history] == [
            (Phase.ASSETS, 1, 4),
            (Phase.ASSETS, 2, 4),
            (Phase.ASSETS, 3, 4),
            (Phase.ASSETS, 4, 4),
        ]
