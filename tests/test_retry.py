"""
Tests for api.utils.retry and api.utils.json_parser
"""

import pytest

from api.production.errors import (
    ConfigurationError,
    ExternalServiceError,
    ResponseParseError,
    UpscaleTimeoutError,
)
from api.utils.json_parser import robust_json_parse
from api.utils.retry import RetryPolicy


class TestRetryPolicyCall:
    @pytest.mark.asyncio
    async def test_gives_up_after_budget(self, no_sleep):
        policy = RetryPolicy(max_retries=2, delay=0.5, sleep=no_sleep)
        calls = []

        async def flaky():
            calls.append(1)
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await policy.call(flaky)
        assert len(calls) == 3
        assert no_sleep.calls == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_sync_callables_are_supported(self, no_sleep):
        policy = RetryPolicy(sleep=no_sleep)
        assert await policy.call(lambda x: x * 2, 21) == 42

    @pytest.mark.asyncio
    async def test_configuration_errors_are_not_retried(self, no_sleep):
        policy = RetryPolicy(sleep=no_sleep)
        calls = []

        async def missing_key():
            calls.append(1)
            raise ConfigurationError("no key")

        with pytest.raises(ConfigurationError):
            await policy.call(missing_key)
        assert len(calls) == 1
        assert no_sleep.calls == []

    def test_negative_budget_rejected(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=-1)


class TestRetryPolicyPoll:
    @pytest.mark.asyncio
    async def test_returns_first_result(self, no_sleep):
        policy = RetryPolicy(delay=1.0, sleep=no_sleep)
        answers = iter([None, None, "done"])

        assert await policy.poll(lambda: next(answers), max_attempts=5) == "done"
        assert no_sleep.calls == [1.0, 1.0, 1.0]

    @pytest.mark.asyncio
    async def test_timeout_uses_factory(self, no_sleep):
        policy = RetryPolicy(delay=1.0, sleep=no_sleep)

        with pytest.raises(UpscaleTimeoutError, match="3"):
            await policy.poll(lambda: None, max_attempts=3,
                              on_timeout=lambda n: UpscaleTimeoutError(f"after {n}"))

    @pytest.mark.asyncio
    async def test_default_timeout_error(self, no_sleep):
        policy = RetryPolicy(sleep=no_sleep)
        with pytest.raises(ExternalServiceError):
            await policy.poll(lambda: None, max_attempts=1)


class TestRobustJsonParse:
    def test_plain_json(self):
        assert robust_json_parse('[{"a": 1}]') == [{"a": 1}]

    def test_fenced_json(self):
        text = '```json\n[{"image_prompt": "x"}]\n```'
        assert robust_json_parse(text) == [{"image_prompt": "x"}]

    def test_prose_around_object(self):
        assert robust_json_parse('Sure! {"topText": "A", "bottomText": "B"} Hope it helps.') == {
            "topText": "A",
            "bottomText": "B",
        }

    def test_array_wins_when_it_opens_first(self):
        assert robust_json_parse('Result: [{"k": 1}, {"k": 2}]') == [{"k": 1}, {"k": 2}]

    @pytest.mark.parametrize("text", ["", "   ", None, "no json here", "[{broken"])
    def test_unrecoverable(self, text):
        with pytest.raises(ResponseParseError):
            robust_json_parse(text)
