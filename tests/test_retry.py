# tests/test_retry.py
from unittest.mock import AsyncMock, patch

import pytest

from core.exceptions import ConfigurationError, MalformedOutputError, ProviderError
from core.retry import with_retry


@pytest.mark.asyncio
class TestWithRetry:
    async def test_returns_first_success(self) -> None:
        operation = AsyncMock(side_effect=[ProviderError("boom"), "ok"])

        with patch("core.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await with_retry(operation, attempts=3, base_delay=1.0)

        assert result == "ok"
        assert operation.await_count == 2
        sleep.assert_awaited_once_with(1.0)

    async def test_backoff_doubles_and_last_error_is_raised(self) -> None:
        errors = [ProviderError("first"), ProviderError("second"), ProviderError("third")]
        operation = AsyncMock(side_effect=errors)

        with patch("core.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(ProviderError) as exception_info:
                await with_retry(operation, attempts=3, base_delay=0.5)

        assert exception_info.value is errors[-1]
        assert [call.args[0] for call in sleep.await_args_list] == [0.5, 1.0]

    async def test_non_retryable_provider_error_is_not_retried(self) -> None:
        operation = AsyncMock(side_effect=ProviderError("bad request", status_code=400, retryable=False))

        with pytest.raises(ProviderError):
            await with_retry(operation, attempts=3, base_delay=0)

        assert operation.await_count == 1

    @pytest.mark.parametrize("error", [ConfigurationError("no key"), MalformedOutputError("bad json")])
    async def test_configuration_and_parse_errors_propagate_immediately(self, error: Exception) -> None:
        operation = AsyncMock(side_effect=error)

        with pytest.raises(type(error)):
            await with_retry(operation, attempts=3, base_delay=0)

        assert operation.await_count == 1

    async def test_default_attempts_come_from_config(self, monkeypatch: pytest.MonkeyPatch) -> None:
        import config

        monkeypatch.setattr(config, "LLM_RETRY_ATTEMPTS", 2)
        operation = AsyncMock(side_effect=ProviderError("boom"))

        with pytest.raises(ProviderError):
            await with_retry(operation)

        assert operation.await_count == 2
