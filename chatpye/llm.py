import asyncio
import logging
import re
from typing import AsyncIterator, Dict, List, Optional

from openai import APIConnectionError, APIStatusError, AsyncOpenAI, RateLimitError

from .config import Settings
from .errors import RateLimitedError, UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_RETRY_DELAY = 10.0


def retry_delay_from(error: RateLimitError) -> float:
    """Seconds to wait before retrying, from the retry-after header or a Gemini retryDelay."""
    response = getattr(error, "response", None)
    if response is not None:
        header = response.headers.get("retry-after")
        if header:
            try:
                return float(header)
            except ValueError:
                pass
    m = re.search(r"retryDelay['\"]?\s*[:=]\s*['\"]?(\d+(?:\.\d+)?)s", str(getattr(error, "body", "") or error))
    if m:
        return float(m.group(1))
    return DEFAULT_RETRY_DELAY


class LLMClient:
    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None, sleep=asyncio.sleep):
        self.settings = settings
        self._client = client
        self.sleep = sleep

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.settings.require_gemini_key(),
                base_url=self.settings.llm_base_url,
            )
        return self._client

    async def _create(self, messages: List[Dict[str, str]], stream: bool):
        return await self.client.chat.completions.create(
            model=self.settings.llm_model,
            messages=messages,
            temperature=0.7,
            top_p=0.95,
            max_tokens=1024,
            stream=stream,
        )

    async def _create_with_retry(self, messages: List[Dict[str, str]], stream: bool):
        retried = False
        while True:
            try:
                return await self._create(messages, stream)
            except RateLimitError as e:
                delay = retry_delay_from(e)
                if self.settings.rate_limit_retry and not retried:
                    logger.warning("Rate limit hit, waiting %.0fs before retrying...", delay)
                    retried = True
                    await self.sleep(delay)
                    continue
                logger.error("Rate limit exceeded: %s", e)
                raise RateLimitedError("Rate limit exceeded. Please try again in a few minutes.", retry_after=delay) from e
            except APIConnectionError as e:
                logger.error("Unable to connect to the model service: %s", e)
                raise UpstreamError(f"Unable to connect to the model service: {e}") from e
            except APIStatusError as e:
                logger.error("Model service error %s: %s", getattr(e, "status_code", "unknown"), e)
                raise UpstreamError(getattr(e, "message", None) or str(e)) from e

    async def stream(self, messages: List[Dict[str, str]]) -> AsyncIterator[str]:
        """Open a streamed completion and return an iterator over text deltas.

        Opening errors (credentials, rate limit) raise here, before any
        output exists; errors while reading surface from the iterator.
        """
        response = await self._create_with_retry(messages, stream=True)
        return self._deltas(response)

    async def _deltas(self, response) -> AsyncIterator[str]:
        try:
            async for chunk in response:
                if not chunk.choices:
                    continue
                text = chunk.choices[0].delta.content
                if text:
                    yield text
        except RateLimitError as e:
            raise RateLimitedError("Rate limit exceeded. Please try again in a few minutes.",
                                   retry_after=retry_delay_from(e)) from e
        except (APIConnectionError, APIStatusError) as e:
            raise UpstreamError(getattr(e, "message", None) or str(e)) from e
        finally:
            close = getattr(response, "close", None)
            if close is not None:
                await close()

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        completion = await self._create_with_retry(messages, stream=False)
        return completion.choices[0].message.content or ""
