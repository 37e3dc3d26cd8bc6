# core/image_service.py
"""Asynchronous text-to-image task service.

Image generation is a two-step protocol: submit a task and receive a task id,
then poll the task until it succeeds or fails. [`ImageGenerationService`]
exposes both steps separately plus [`generate()`](core/image_service.py:91),
which runs the whole submit-and-poll flow with bounded polling.
"""

import asyncio
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel

import config
from core.exceptions import AssetTimeoutError, ProviderError
from core.http_client_service import HTTPClientService, ImageHTTPClient
from core.retry import with_retry

logger = structlog.get_logger(__name__)


class ImageTaskStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ImageTaskResult(BaseModel):
    """Outcome of a single poll."""

    status: ImageTaskStatus
    url: str | None = None
    message: str | None = None


class ImageGenerationService:
    """Submit and poll image synthesis tasks."""

    def __init__(self, image_client: ImageHTTPClient):
        self._image_client = image_client

    async def aclose(self) -> None:
        await self._image_client.aclose()

    async def submit(self, prompt: str, style: str | None = None) -> str:
        """Submit a task and return its id.

        Raises:
            ConfigurationError: If no image API key is configured.
            ProviderError: On HTTP failure or when the response has no task id.
        """
        response_data = await self._image_client.submit_task(prompt, style or config.IMAGE_STYLE)
        output = response_data.get("output") if isinstance(response_data, dict) else None
        task_id = output.get("task_id") if isinstance(output, dict) else None
        if not task_id:
            raise ProviderError(
                "Image task submission returned no task id",
                details={"code": response_data.get("code") if isinstance(response_data, dict) else None},
            )
        logger.debug("Image task submitted", task_id=task_id)
        return str(task_id)

    async def poll(self, task_id: str) -> ImageTaskResult:
        """Fetch the current state of a task."""
        response_data = await self._image_client.get_task(task_id)
        return self._parse_task_result(response_data)

    @staticmethod
    def _parse_task_result(response_data: dict[str, Any]) -> ImageTaskResult:
        output = response_data.get("output") if isinstance(response_data, dict) else None
        if not isinstance(output, dict):
            return ImageTaskResult(status=ImageTaskStatus.PENDING)

        status = str(output.get("task_status", "")).upper()
        if status == "SUCCEEDED":
            results = output.get("results") or []
            url = results[0].get("url") if results and isinstance(results[0], dict) else None
            if not url:
                return ImageTaskResult(status=ImageTaskStatus.FAILED, message="Task succeeded without an image URL")
            return ImageTaskResult(status=ImageTaskStatus.SUCCEEDED, url=url)
        if status in ("FAILED", "CANCELED", "UNKNOWN"):
            return ImageTaskResult(
                status=ImageTaskStatus.FAILED,
                message=output.get("message") or f"Task ended with status {status}",
            )
        return ImageTaskResult(status=ImageTaskStatus.PENDING)

    async def generate(self, prompt: str, style: str | None = None) -> str:
        """Submit a task through the retry wrapper and poll it to completion.

        Returns:
            The URL of the generated image.

        Raises:
            ConfigurationError: If no image API key is configured.
            ProviderError: If submission fails after retries or the task fails.
            AssetTimeoutError: If the task is still pending after
                `config.IMAGE_POLL_MAX_ATTEMPTS` polls.
        """
        task_id = await with_retry(lambda: self.submit(prompt, style), operation_name="image task submission")

        max_attempts = config.IMAGE_POLL_MAX_ATTEMPTS
        for attempt in range(max_attempts):
            await asyncio.sleep(config.IMAGE_POLL_INTERVAL_SECONDS)
            result = await self.poll(task_id)
            if result.status is ImageTaskStatus.SUCCEEDED and result.url:
                logger.info("Image task succeeded", task_id=task_id, polls=attempt + 1)
                return result.url
            if result.status is ImageTaskStatus.FAILED:
                raise ProviderError(
                    f"Image task failed: {result.message}",
                    details={"task_id": task_id},
                    retryable=False,
                )

        raise AssetTimeoutError(
            "Image task timed out",
            details={"task_id": task_id, "poll_attempts": max_attempts},
        )


def create_image_service(http_client: HTTPClientService | None = None) -> ImageGenerationService:
    return ImageGenerationService(ImageHTTPClient(http_client or HTTPClientService()))


image_service = create_image_service()
