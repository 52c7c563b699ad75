import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

import requests
from youtube_transcript_api import YouTubeTranscriptApi

from .errors import UpstreamError, VideoNotFoundError

logger = logging.getLogger(__name__)

VIDEOS_ENDPOINT = "https://www.googleapis.com/youtube/v3/videos"
OEMBED_ENDPOINT = "https://www.youtube.com/oembed"
PREFERRED_LANGS = ["en", "en-US", "en-GB", "zh", "zh-Hans", "zh-Hant", "ja", "es"]

_ID = r"([A-Za-z0-9_-]{11})(?![A-Za-z0-9_-])"
_HOST = r"^(?:https?://)?(?:[\w-]+\.)*"

# Tried in order, first match wins
VIDEO_ID_PATTERNS = [
    re.compile(_HOST + r"youtube\.com/watch\?(?:[^#\s]*&)?v=" + _ID, re.IGNORECASE),
    re.compile(_HOST + r"youtu\.be/" + _ID, re.IGNORECASE),
    re.compile(_HOST + r"youtube(?:-nocookie)?\.com/embed/" + _ID, re.IGNORECASE),
    re.compile(_HOST + r"youtube\.com/v/" + _ID, re.IGNORECASE),
    re.compile(_HOST + r"youtube\.com/shorts/" + _ID, re.IGNORECASE),
    re.compile(_HOST + r"youtube\.com/live/" + _ID, re.IGNORECASE),
]

# Lenient pattern to find the first YouTube URL anywhere inside a sentence
YOUTUBE_URL_IN_TEXT = re.compile(
    r"((?:https?://)?(?:www\.|m\.)?(?:youtube\.com/(?:watch\?|embed/|v/|shorts/|live/)|youtu\.be/)[^\s]+)",
    re.IGNORECASE,
)


@dataclass
class VideoInfo:
    video_id: str
    title: str = ""
    description: str = ""
    channel: str = ""
    thumbnail: str = ""
    views: str = ""
    published_at: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "videoId": self.video_id,
            "title": self.title,
            "description": self.description,
            "channel": self.channel,
            "thumbnail": self.thumbnail,
            "views": self.views,
            "publishedAt": self.published_at,
        }


@dataclass
class Transcript:
    video_id: str
    text: str
    language: str = ""
    segments: List[Dict] = field(default_factory=list)


def extract_video_id(url: str) -> Optional[str]:
    if not url:
        return None
    url = url.strip()
    for pattern in VIDEO_ID_PATTERNS:
        m = pattern.search(url)
        if m:
            return m.group(1)
    return None


def find_first_youtube_url(text: str) -> Optional[str]:
    """Find the first YouTube URL inside arbitrary text."""
    if not text:
        return None
    m = YOUTUBE_URL_IN_TEXT.search(text)
    if m and extract_video_id(m.group(1)):
        return m.group(1)
    return None


def canonical_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def format_views(count) -> str:
    try:
        return f"{int(count or 0):,}"
    except (TypeError, ValueError):
        return "0"


def format_published(value: str) -> str:
    """Render an RFC 3339 timestamp as e.g. "October 25, 2009"."""
    if not value:
        return ""
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return ""
    return f"{dt.strftime('%B')} {dt.day}, {dt.year}"


def fetch_video_info(video_id: str, api_key: str) -> VideoInfo:
    try:
        resp = requests.get(
            VIDEOS_ENDPOINT,
            params={"part": "snippet,statistics", "id": video_id, "key": api_key},
            timeout=10,
        )
        resp.raise_for_status()
        data = resp.json()
    except requests.RequestException as e:
        logger.error("Error fetching video info for %s: %s", video_id, e)
        raise UpstreamError("Failed to fetch video information", details=str(e)) from e

    items = data.get("items") or []
    if not items:
        raise VideoNotFoundError("Video not found")

    snippet = items[0].get("snippet") or {}
    statistics = items[0].get("statistics") or {}
    thumbnails = snippet.get("thumbnails") or {}
    thumb = thumbnails.get("high") or thumbnails.get("medium") or thumbnails.get("default") or {}
    return VideoInfo(
        video_id=video_id,
        title=snippet.get("title", ""),
        description=snippet.get("description", ""),
        channel=snippet.get("channelTitle", ""),
        thumbnail=thumb.get("url", ""),
        views=format_views(statistics.get("viewCount")),
        published_at=format_published(snippet.get("publishedAt", "")),
    )


def fetch_oembed(url: str) -> Dict:
    """Keyless lookup of title, channel and thumbnail.

    400/401/404 mean the video is missing or private; transport failures
    and any other status are upstream errors.
    """
    try:
        resp = requests.get(
            OEMBED_ENDPOINT,
            params={"url": url, "format": "json"},
            timeout=10,
        )
    except requests.RequestException as e:
        logger.error("oEmbed lookup for %s failed: %s", url, e)
        raise UpstreamError("Failed to fetch video information", details=str(e)) from e

    if resp.status_code in (400, 401, 404):
        raise VideoNotFoundError("Video not found")
    if resp.status_code != 200:
        logger.error("oEmbed lookup for %s returned %s", url, resp.status_code)
        raise UpstreamError("Failed to fetch video information", details=f"oEmbed returned {resp.status_code}")
    try:
        return resp.json()
    except ValueError as e:
        raise UpstreamError("Failed to fetch video information", details=str(e)) from e


def video_info_from_oembed(video_id: str, info: Dict) -> VideoInfo:
    return VideoInfo(
        video_id=video_id,
        title=info.get("title", ""),
        channel=info.get("author_name", ""),
        thumbnail=info.get("thumbnail_url", ""),
    )


def format_ts(sec: float) -> str:
    m = int(sec // 60)
    s = int(sec % 60)
    return f"{m:02d}:{s:02d}"


def fetch_transcript(video_id: str) -> Transcript:
    """Fetch captions as "[mm:ss] text" lines.

    TranscriptsDisabled, NoTranscriptFound and VideoUnavailable propagate.
    """
    ytt_api = YouTubeTranscriptApi()
    fetched = ytt_api.fetch(video_id, languages=PREFERRED_LANGS)

    lines = []
    segments = []
    for seg in fetched:
        text = seg.text.replace("\n", " ")
        lines.append(f"[{format_ts(seg.start)}] {text}")
        segments.append({"start": seg.start, "duration": seg.duration, "text": text})

    return Transcript(
        video_id=video_id,
        text="\n".join(lines),
        language=getattr(fetched, "language_code", ""),
        segments=segments,
    )
