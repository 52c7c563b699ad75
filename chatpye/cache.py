import sys
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from cachetools import TTLCache


@dataclass
class CacheEntry:
    text: str
    timestamp: float
    extra: Dict[str, Any] = field(default_factory=dict)


def analysis_key(video_id: str, prompt: str) -> str:
    return f"{video_id}_{prompt.strip()}"


class FreshCache:
    """Process-lifetime cache whose entries expire after a fixed interval.

    No locking: under concurrent writes for the same key the last writer wins.
    """

    def __init__(self, ttl_seconds: float, timer: Callable[[], float] = time.monotonic):
        self.ttl = ttl_seconds
        self.timer = timer
        self._entries = TTLCache(maxsize=sys.maxsize, ttl=ttl_seconds, timer=timer)

    def get(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self.timer() - entry.timestamp >= self.ttl:
            self._entries.pop(key, None)
            return None
        return entry

    def set(self, key: str, text: str, **extra) -> CacheEntry:
        entry = CacheEntry(text=text, timestamp=self.timer(), extra=extra)
        self._entries[key] = entry
        return entry

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self):
        self._entries.clear()
