# core/http_client_service.py
"""Perform HTTP I/O for completion and image provider integrations.

One `HTTPClientService` wraps an `httpx.AsyncClient` behind a semaphore of
`config.MAX_CONCURRENT_LLM_CALLS` slots. Every request is a single attempt
that either returns a 2xx response or raises `ProviderError`; retries belong
to [`core.retry.with_retry()`](core/retry.py:26).
"""

import asyncio
from collections import Counter
from typing import Any

import httpx
import structlog

import config
from core.exceptions import ConfigurationError, handle_provider_error

logger = structlog.get_logger(__name__)


class HTTPClientService:
    """Concurrency-limited JSON requests over a shared `httpx.AsyncClient`."""

    def __init__(
        self,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        timeout = config.HTTPX_TIMEOUT if timeout is None else timeout
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._semaphore = asyncio.Semaphore(max(1, config.MAX_CONCURRENT_LLM_CALLS))
        self._outcomes: Counter[str] = Counter()
        logger.debug("HTTP client ready", timeout=timeout, max_in_flight=config.MAX_CONCURRENT_LLM_CALLS)

    @property
    def request_count(self) -> int:
        return sum(self._outcomes.values())

    async def aclose(self) -> None:
        await self._client.aclose()

    async def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """POST `payload` as JSON.

        Raises:
            ProviderError: On timeout, transport failure, or a non-2xx status.
        """
        return await self._request("POST", url, json=payload, headers=headers or {})

    async def get_json(self, url: str, headers: dict[str, str] | None = None) -> httpx.Response:
        return await self._request("GET", url, headers=headers or {})

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        async with self._semaphore:
            try:
                response = await self._client.request(method, url, **kwargs)
                response.raise_for_status()
            except (httpx.HTTPStatusError, httpx.RequestError) as e:
                self._outcomes["failed"] += 1
                response_text = e.response.text[:200] if isinstance(e, httpx.HTTPStatusError) else None
                logger.warning(
                    "HTTP request failed",
                    method=method,
                    url=url,
                    error_type=type(e).__name__,
                    response_text=response_text,
                )
                raise handle_provider_error(f"HTTP {method}", e, url=url, response_text=response_text) from e

            self._outcomes["successful"] += 1
            logger.debug("HTTP request ok", method=method, url=url, status=response.status_code)
            return response

    def get_statistics(self) -> dict[str, Any]:
        total = self.request_count
        return {
            "total_requests": total,
            "successful_requests": self._outcomes["successful"],
            "failed_requests": self._outcomes["failed"],
            "success_rate": self._outcomes["successful"] / total * 100 if total else 0,
        }


def _bearer_headers(api_key: str, purpose: str) -> dict[str, str]:
    if not api_key:
        raise ConfigurationError(
            f"API key for {purpose} is missing",
            details={"hint": "set OPENAI_API_KEY (and optionally IMAGE_API_KEY) in the environment or .env"},
        )
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }


class CompletionHTTPClient:
    """Call the chat completion API using a shared HTTP client."""

    def __init__(self, http_client: HTTPClientService):
        """Initialize the completion client.

        Args:
            http_client: Shared HTTP client used for requests.
        """
        self._http_client = http_client

    async def aclose(self) -> None:
        await self._http_client.aclose()

    async def get_completion(
        self,
        model: str,
        messages: list[dict[str, str]],
        temperature: float,
        top_p: float,
        max_tokens: int,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Request a chat completion from an OpenAI-compatible API.

        Args:
            model: Model identifier.
            messages: Chat messages payload.
            temperature: Sampling temperature.
            top_p: Nucleus sampling mass.
            max_tokens: Maximum tokens to generate.
            **kwargs: Additional provider-specific parameters merged into the request.

        Returns:
            Parsed JSON response from the completion provider.

        Raises:
            ConfigurationError: If no API key is configured.
            ProviderError: If the HTTP request fails.
        """
        headers = _bearer_headers(config.OPENAI_API_KEY, "text completion")

        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "top_p": top_p,
            "max_tokens": max_tokens,
            "stream": False,
            **kwargs,
        }

        logger.debug(f"Requesting completion from {config.OPENAI_API_BASE} " f"for model '{model}' with {len(messages)} messages")

        response = await self._http_client.post_json(f"{config.OPENAI_API_BASE}/chat/completions", payload, headers)

        return response.json()


class ImageHTTPClient:
    """Call the asynchronous text-to-image task API using a shared HTTP client."""

    SUBMIT_PATH = "/api/v1/services/aigc/text2image/image-synthesis"
    TASK_PATH = "/api/v1/tasks"

    def __init__(self, http_client: HTTPClientService):
        self._http_client = http_client

    async def aclose(self) -> None:
        await self._http_client.aclose()

    async def submit_task(self, prompt: str, style: str) -> dict[str, Any]:
        """Submit an image synthesis task.

        Raises:
            ConfigurationError: If no image API key is configured.
            ProviderError: If the HTTP request fails.
        """
        headers = _bearer_headers(config.IMAGE_API_KEY, "image generation")
        headers["X-DashScope-Async"] = "enable"

        payload = {
            "model": config.IMAGE_MODEL,
            "input": {"prompt": prompt},
            "parameters": {
                "style": style,
                "size": config.IMAGE_SIZE,
                "n": 1,
            },
        }

        response = await self._http_client.post_json(f"{config.IMAGE_API_BASE}{self.SUBMIT_PATH}", payload, headers)
        return response.json()

    async def get_task(self, task_id: str) -> dict[str, Any]:
        """Fetch the current state of an image synthesis task."""
        headers = _bearer_headers(config.IMAGE_API_KEY, "image generation")
        response = await self._http_client.get_json(f"{config.IMAGE_API_BASE}{self.TASK_PATH}/{task_id}", headers)
        return response.json()
