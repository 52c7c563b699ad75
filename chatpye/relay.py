import logging
from typing import AsyncIterator, Callable, Optional

from .errors import ChatPyeError, RateLimitedError

logger = logging.getLogger(__name__)


def error_text(error: Exception) -> str:
    if isinstance(error, RateLimitedError):
        return f"Rate limit exceeded. Please try again in {int(round(error.retry_after))} seconds."
    if isinstance(error, ChatPyeError):
        return f"Error: {error.message}"
    return f"Error: {error}"


async def replay(text: str) -> AsyncIterator[str]:
    yield text


async def relay(source: AsyncIterator[str],
                on_complete: Optional[Callable[[str], None]] = None) -> AsyncIterator[str]:
    """Forward chunks from source as soon as each one arrives.

    A failing source ends the relay with one error line. The source is
    closed exactly once; on_complete gets the full text only on success.
    """
    parts = []
    failed = False
    try:
        async for chunk in source:
            if not chunk:
                continue
            parts.append(chunk)
            yield chunk
    except Exception as e:  # the response has already started; report in-band
        failed = True
        logger.error("Error while relaying model output: %s", e)
        yield ("\n\n" if parts else "") + error_text(e)
    finally:
        aclose = getattr(source, "aclose", None)
        if aclose is not None:
            await aclose()

    if not failed and on_complete is not None:
        on_complete("".join(parts))
