import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from dotenv import load_dotenv

from .errors import MissingCredentialError

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_APP_URL = "https://app.chatpye.com"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_host_map(raw: str) -> Dict[str, str]:
    """Parse "chatpye.com=app.chatpye.com,other.com=app.chatpye.com"."""
    hosts: Dict[str, str] = {}
    for item in (raw or "").split(","):
        if "=" not in item:
            continue
        src, dst = item.split("=", 1)
        if src.strip() and dst.strip():
            hosts[src.strip().lower()] = dst.strip().lower()
    return hosts


@dataclass
class Settings:
    gemini_api_key: Optional[str] = None
    youtube_api_key: Optional[str] = None
    llm_base_url: str = GEMINI_OPENAI_BASE_URL
    llm_model: str = "gemini-2.0-flash"
    vision_model: str = "gemini-2.0-flash"
    cache_ttl_seconds: float = 24 * 60 * 60
    rate_limit_retry: bool = True
    app_url: str = DEFAULT_APP_URL
    canonical_hosts: Dict[str, str] = field(default_factory=dict)
    force_https: bool = False
    port: int = 7860
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        app_url = os.getenv("APP_URL", DEFAULT_APP_URL).rstrip("/")
        app_host = app_url.split("://", 1)[-1]
        default_hosts = ",".join(f"{h}={app_host}" for h in ("chatpye.com", "chatpyeyoutube.com") if h != app_host)
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY"),
            youtube_api_key=os.getenv("YOUTUBE_API_KEY"),
            llm_base_url=os.getenv("LLM_BASE_URL", GEMINI_OPENAI_BASE_URL),
            llm_model=os.getenv("LLM_MODEL", "gemini-2.0-flash"),
            vision_model=os.getenv("VISION_MODEL", "gemini-2.0-flash"),
            cache_ttl_seconds=float(os.getenv("CACHE_TTL_SECONDS", 24 * 60 * 60)),
            rate_limit_retry=_env_bool("RATE_LIMIT_RETRY", True),
            app_url=app_url,
            canonical_hosts=_parse_host_map(os.getenv("CANONICAL_HOST_REDIRECTS", default_hosts)),
            force_https=_env_bool("FORCE_HTTPS", False),
            port=int(os.getenv("PORT", 7860)),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def require_gemini_key(self) -> str:
        if not self.gemini_api_key:
            raise MissingCredentialError("GEMINI_API_KEY is not set in environment variables")
        return self.gemini_api_key

    def require_youtube_key(self) -> str:
        if not self.youtube_api_key:
            raise MissingCredentialError("YOUTUBE_API_KEY is not set in environment variables")
        return self.youtube_api_key
