# core/llm_interface.py
"""Text completion service used by every generation stage.

The outline, fragment and follow-up agents all talk to the model through the
module-level [`llm_service`](core/llm_interface.py:1). Tests patch that object
on the importing module rather than mocking HTTP.
"""

from typing import Any

import structlog

import config
from core.exceptions import ProviderError
from core.http_client_service import CompletionHTTPClient, HTTPClientService

logger = structlog.get_logger(__name__)


class CompletionService:
    """Generate text completions through an OpenAI-compatible chat endpoint."""

    def __init__(self, completion_client: CompletionHTTPClient):
        self._completion_client = completion_client
        self._stats = {
            "completions_requested": 0,
            "completions_successful": 0,
            "completions_failed": 0,
        }

    async def complete(
        self,
        system_instruction: str,
        user_content: str,
        *,
        model_name: str | None = None,
        temperature: float,
        top_p: float,
        max_tokens: int,
        **kwargs: Any,
    ) -> str:
        """Run one completion and return the raw text of the first choice.

        This performs a single attempt; callers wrap it in
        [`with_retry()`](core/retry.py:26).

        Args:
            system_instruction: System message content.
            user_content: User message content.
            model_name: Model identifier. Defaults to `config.COMPLETION_MODEL`.
            temperature: Sampling temperature.
            top_p: Nucleus sampling mass.
            max_tokens: Output token ceiling.
            **kwargs: Extra provider parameters merged into the request body.

        Returns:
            The generated text, unmodified.

        Raises:
            ConfigurationError: If no API key is configured.
            ProviderError: On transport failure, a non-2xx status, or a response
                with no usable content.
        """
        self._stats["completions_requested"] += 1
        model = model_name or config.COMPLETION_MODEL

        messages = [
            {"role": "system", "content": system_instruction},
            {"role": "user", "content": user_content},
        ]

        try:
            response_data = await self._completion_client.get_completion(
                model,
                messages,
                temperature,
                top_p,
                max_tokens,
                **kwargs,
            )
        except ProviderError:
            self._stats["completions_failed"] += 1
            raise

        content = self._extract_completion_content(response_data)
        if not content:
            self._stats["completions_failed"] += 1
            raise ProviderError(
                f"Completion from '{model}' contained no content",
                details={"model": model, "response_keys": sorted(response_data.keys()) if isinstance(response_data, dict) else []},
            )

        usage = response_data.get("usage")
        if usage:
            logger.debug("Completion usage", model=model, usage=usage)

        self._stats["completions_successful"] += 1
        return content

    def _extract_completion_content(self, response_data: dict[str, Any]) -> str:
        """Extract completion content from API response."""
        if not isinstance(response_data, dict):
            logger.error("Completion response is not a JSON object", response_type=type(response_data).__name__)
            return ""

        # OpenAI-compatible schema
        choices = response_data.get("choices")
        if isinstance(choices, list) and choices:
            choice0 = choices[0] if isinstance(choices[0], dict) else {}
            message = choice0.get("message") or {}

            content = message.get("content")
            if isinstance(content, str) and content.strip():
                return content

            # Qwen reasoning models expose 'reasoning_content'
            reasoning_content = message.get("reasoning_content")
            if isinstance(reasoning_content, str) and reasoning_content.strip():
                logger.warning("LLM response missing 'content'; using 'reasoning_content' fallback")
                return reasoning_content

            direct_choice_content = choice0.get("content")
            if isinstance(direct_choice_content, str) and direct_choice_content.strip():
                logger.warning("LLM response missing message.content; using choice['content'] fallback")
                return direct_choice_content

        # Native DashScope schema: {"output": {"choices": [...]}} or {"output": {"text": ...}}
        output = response_data.get("output")
        if isinstance(output, dict):
            output_choices = output.get("choices")
            if isinstance(output_choices, list) and output_choices and isinstance(output_choices[0], dict):
                content = (output_choices[0].get("message") or {}).get("content")
                if isinstance(content, str) and content.strip():
                    return content
            output_text = output.get("text")
            if isinstance(output_text, str) and output_text.strip():
                return output_text

        for key in ("output_text", "text", "response", "content"):
            top = response_data.get(key)
            if isinstance(top, str) and top.strip():
                logger.warning(f"LLM response using top-level '{key}' fallback for content")
                return top

        logger.error("Invalid response structure - missing choices/content", response_keys=sorted(response_data.keys()))
        return ""

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._completion_client.aclose()

    def get_statistics(self) -> dict[str, Any]:
        """Get completion service statistics."""
        total = self._stats["completions_requested"]
        return {
            **self._stats,
            "success_rate": (self._stats["completions_successful"] / total * 100) if total > 0 else 0,
            "failure_rate": (self._stats["completions_failed"] / total * 100) if total > 0 else 0,
        }


def create_llm_service(http_client: HTTPClientService | None = None) -> CompletionService:
    """Create a completion service wired to a (possibly shared) HTTP client."""
    return CompletionService(CompletionHTTPClient(http_client or HTTPClientService()))


# Module-level service instance
llm_service = create_llm_service()
