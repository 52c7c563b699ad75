import asyncio
import logging
import time
from typing import AsyncIterator, Callable, Dict, List, Optional

import requests
from youtube_transcript_api._errors import CouldNotRetrieveTranscript

from .cache import FreshCache, analysis_key
from .config import Settings
from .errors import InvalidRequestError
from .llm import LLMClient
from .prompts import build_analysis_prompt, build_messages, build_overview_prompt
from .relay import relay, replay
from .vision import describe_video
from .youtube import (
    VideoInfo,
    canonical_url,
    extract_video_id,
    fetch_oembed,
    fetch_transcript,
    fetch_video_info,
    video_info_from_oembed,
)

logger = logging.getLogger(__name__)


class Analyzer:
    """Ties the pieces together: video id, context, prompt, model stream, cache."""

    def __init__(
        self,
        settings: Settings,
        llm: Optional[LLMClient] = None,
        cache: Optional[FreshCache] = None,
        transcript_fetcher: Callable = fetch_transcript,
        describe: Callable = describe_video,
    ):
        self.settings = settings
        self.llm = llm or LLMClient(settings)
        self.cache = cache or FreshCache(settings.cache_ttl_seconds)
        self.transcript_fetcher = transcript_fetcher
        self.describe = describe

    def require_video_id(self, url: str) -> str:
        video_id = extract_video_id(url)
        if not video_id:
            raise InvalidRequestError("Invalid YouTube URL")
        return video_id

    async def video_info(self, video_id: str) -> VideoInfo:
        if self.settings.youtube_api_key:
            return await asyncio.to_thread(fetch_video_info, video_id, self.settings.youtube_api_key)

        # keyless fallback: oEmbed has no description or statistics
        info = await asyncio.to_thread(fetch_oembed, canonical_url(video_id))
        return video_info_from_oembed(video_id, info)

    async def gather_context(self, video_id: str) -> Dict[str, str]:
        """Transcript if the video has captions, vision description otherwise."""
        key = f"context:{video_id}"
        cached = self.cache.get(key)
        if cached:
            return {cached.extra["source"]: cached.text}

        try:
            transcript = await asyncio.to_thread(self.transcript_fetcher, video_id)
        except CouldNotRetrieveTranscript as e:
            logger.info("No transcript available for %s: %s", video_id, type(e).__name__)
        except requests.RequestException as e:
            logger.warning("Transcript request for %s failed: %s", video_id, e)
        else:
            if transcript.text:
                self.cache.set(key, transcript.text, source="transcript")
                return {"transcript": transcript.text}

        vision = await self.describe(canonical_url(video_id), self.settings)
        if vision:
            self.cache.set(key, vision, source="vision")
            return {"vision": vision}
        return {}

    async def stream_analysis(self, url: str, prompt: str,
                              history: Optional[List[Dict[str, str]]] = None) -> AsyncIterator[str]:
        """Return the chunk stream answering prompt about the video at url.

        Validation, credential and rate-limit failures raise before the
        stream is returned so callers can still answer with a status code.
        """
        if not url or not prompt or not prompt.strip():
            raise InvalidRequestError("YouTube URL and prompt are required")
        video_id = self.require_video_id(url)

        key = analysis_key(video_id, prompt)
        # earlier assistant-only turns (the video card) do not change the answer
        cacheable = not any(m.get("role") == "user" for m in history or [])
        if cacheable:
            cached = self.cache.get(key)
            if cached:
                logger.info("Using cached analysis for %s", video_id)
                return relay(replay(cached.text))

        self.settings.require_gemini_key()
        context = await self.gather_context(video_id)
        user_prompt = build_analysis_prompt(prompt, url, **context)
        source = await self.llm.stream(build_messages(user_prompt, history))

        def store(text: str):
            if text and cacheable:
                self.cache.set(key, text, videoId=video_id, prompt=prompt)

        return relay(source, on_complete=store)

    async def overview(self, url: str) -> Dict:
        """Metadata-only first look at a video, cached by URL."""
        if not url:
            raise InvalidRequestError("YouTube URL is required")

        key = f"overview:{url}"
        cached = self.cache.get(key)
        if cached:
            logger.info("Overview for %s retrieved from cache", url)
            return {
                "status": "completed",
                "message": "Video analysis retrieved from cache",
                "analysis": {
                    "analysis": cached.text,
                    "videoInfo": cached.extra.get("videoInfo"),
                    "timestamp": cached.extra.get("createdAt"),
                },
            }

        video_id = self.require_video_id(url)
        self.settings.require_gemini_key()
        info = await self.video_info(video_id)
        analysis = await self.llm.complete(build_messages(build_overview_prompt(info)))
        self.cache.set(key, analysis, videoInfo=info.to_dict(), createdAt=int(time.time() * 1000))

        return {
            "status": "processing",
            "message": "Initial analysis complete, continuing with detailed processing",
            "initialAnalysis": analysis,
            "videoId": video_id,
        }

    async def warm(self, video_id: str):
        """Fetch and cache the context so the first question answers faster."""
        try:
            await self.gather_context(video_id)
        except Exception:
            logger.exception("Error in background processing for %s", video_id)
