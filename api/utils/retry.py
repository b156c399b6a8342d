"""
Retry and polling policy shared by every external-call wrapper.

call():  fixed-delay retry of a whole call (analysis, image generation).
poll():  fixed-interval polling of a long-running job (upscale, Veo).
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from api.production.errors import ConfigurationError, ExternalServiceError, PipelineCancelled

logger = logging.getLogger("retry")


async def _resolve(result):
    if asyncio.iscoroutine(result):
        return await result
    return result


class RetryPolicy:
    """max_retries extra attempts after the first one, `delay` seconds apart."""

    def __init__(
        self,
        max_retries: int = 3,
        delay: float = 2.0,
        give_up_on: tuple = (ConfigurationError, PipelineCancelled),
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.delay = delay
        self.give_up_on = give_up_on
        self._sleep = sleep

    async def call(self, func, *args, **kwargs):
        """Run func (sync or async), retrying on any error not in give_up_on."""
        attempts = self.max_retries + 1
        for attempt in range(attempts):
            try:
                return await _resolve(func(*args, **kwargs))
            except self.give_up_on:
                raise
            except Exception as e:
                if attempt >= attempts - 1:
                    raise
                logger.warning(
                    f"⏳ Call failed ({e}). Retrying in {self.delay:.1f}s "
                    f"(Attempt {attempt + 1}/{attempts})"
                )
                await self._sleep(self.delay)

    async def poll(
        self,
        fetch,
        max_attempts: Optional[int] = None,
        on_timeout: Optional[Callable[[int], Exception]] = None,
    ):
        """
        Sleep `delay`, then call fetch, until fetch returns something other
        than None. fetch may raise to abort the poll.
        max_attempts=None polls until done.
        """
        attempt = 0
        while max_attempts is None or attempt < max_attempts:
            attempt += 1
            await self._sleep(self.delay)
            result = await _resolve(fetch())
            if result is not None:
                return result

        if on_timeout is not None:
            raise on_timeout(attempt)
        raise ExternalServiceError(f"Polling gave up after {attempt} attempts")
