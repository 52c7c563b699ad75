import logging

import httpx
from google import genai
from google.genai import errors, types

from .config import Settings
from .prompts import VISION_PROMPT

logger = logging.getLogger(__name__)


async def describe_video(url: str, settings: Settings) -> str:
    """Ask a multimodal Gemini model to watch the video itself.

    Used when the video has no captions. Returns "" when the model call
    fails, so the analysis can still go ahead with the URL alone.
    """
    client = genai.Client(api_key=settings.require_gemini_key())
    contents = types.Content(
        role="user",
        parts=[
            types.Part(file_data=types.FileData(file_uri=url, mime_type="video/*")),
            types.Part(text=VISION_PROMPT),
        ],
    )
    try:
        response = await client.aio.models.generate_content(
            model=settings.vision_model,
            contents=contents,
            config=types.GenerateContentConfig(temperature=0.4, max_output_tokens=1024),
        )
    except (errors.APIError, httpx.HTTPError) as e:
        logger.error("Error in vision analysis for %s: %s", url, e)
        return ""
    return response.text or ""
