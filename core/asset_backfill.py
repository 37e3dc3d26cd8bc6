# core/asset_backfill.py
"""Fill in image URLs for scenes and node-level visual specs.

Back-fill is optional and best-effort: each asset is requested sequentially and
a failure of one asset (provider error, failed task, polling timeout) only
leaves that asset without an `image_url`.
"""

from __future__ import annotations

from typing import Protocol

import structlog

import config
from core.exceptions import ConfigurationError, GalforgeError
from core.progress import Phase, PhaseProgress, ProgressChannel
from models.script_models import GalgameScript

logger = structlog.get_logger(__name__)


class ImageProvider(Protocol):
    async def generate(self, prompt: str, style: str | None = None) -> str: ...


async def backfill_assets(
    script: GalgameScript,
    image_provider: ImageProvider,
    progress: ProgressChannel | None = None,
) -> GalgameScript:
    """Request one image per scene and per node visual spec.

    Args:
        script: Assembled script. Not mutated.
        image_provider: Service that turns a prompt into an image URL.
        progress: Optional channel receiving `PhaseProgress(ASSETS, ...)` events.

    Returns:
        A copy of `script` whose scenes and visual specs carry the URLs that
        could be generated. Nothing else changes.

    Notes:
        Missing image credentials skip the remaining assets with a warning; the
        presentation layer is expected to render placeholders instead.
    """
    result = script.model_copy(deep=True)

    targets: list[tuple[str, str, object]] = []
    for scene in result.scenes:
        prompt = scene.visual_prompt or scene.description
        if prompt:
            targets.append((f"scene:{scene.id}", prompt, scene))
    for node in result.nodes:
        spec = node.visual_specs
        if spec is not None and (spec.visual_prompt or spec.description):
            targets.append((f"{spec.type}:{node.id}", spec.visual_prompt or spec.description, spec))

    total = len(targets)
    logger.info("Asset back-fill starting", assets=total)
    generated = 0

    for index, (label, prompt, target) in enumerate(targets, start=1):
        try:
            url = await image_provider.generate(prompt, config.IMAGE_STYLE)
        except ConfigurationError as e:
            logger.warning("Image credentials missing; skipping asset back-fill", error=str(e))
            break
        except (GalforgeError, TimeoutError) as e:
            logger.warning("Asset generation failed; leaving it without an image", asset=label, error=str(e))
        else:
            target.image_url = url  # type: ignore[attr-defined]
            generated += 1
            logger.debug("Asset generated", asset=label)

        if progress is not None:
            await progress.publish(
                PhaseProgress(
                    phase=Phase.ASSETS,
                    current=index,
                    total=total,
                    message=f"Generated image for {label}",
                )
            )

    logger.info("Asset back-fill finished", generated=generated, assets=total)
    return result
