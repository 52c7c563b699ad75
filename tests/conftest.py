import pytest
from fastapi.testclient import TestClient

from app import create_app
from chatpye.analysis import Analyzer
from chatpye.cache import FreshCache
from chatpye.config import Settings
from chatpye.youtube import Transcript

VIDEO_ID = "dQw4w9WgXcQ"
VIDEO_URL = f"https://www.youtube.com/watch?v={VIDEO_ID}"


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeSource:
    """Async chunk source that records how often it was closed."""

    def __init__(self, chunks, error=None):
        self.chunks = list(chunks)
        self.error = error
        self.closed = 0

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.chunks:
            return self.chunks.pop(0)
        if self.error is not None:
            error, self.error = self.error, None
            raise error
        raise StopAsyncIteration

    async def aclose(self):
        self.closed += 1


class FakeLLM:
    def __init__(self, chunks=("Hello", " world"), open_error=None, stream_error=None, completion="An overview."):
        self.chunks = chunks
        self.open_error = open_error
        self.stream_error = stream_error
        self.completion = completion
        self.calls = []
        self.sources = []

    async def stream(self, messages):
        self.calls.append(messages)
        if self.open_error is not None:
            raise self.open_error
        source = FakeSource(self.chunks, self.stream_error)
        self.sources.append(source)
        return source

    async def complete(self, messages):
        self.calls.append(messages)
        return self.completion


def transcript_fetcher(video_id):
    return Transcript(video_id=video_id, text="[00:00] never gonna give you up", language="en")


async def no_vision(url, settings):
    return ""


@pytest.fixture
def settings():
    return Settings(gemini_api_key="test-key", youtube_api_key=None, app_url="https://app.chatpye.com",
                    canonical_hosts={"chatpye.com": "app.chatpye.com", "chatpyeyoutube.com": "app.chatpye.com"})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def analyzer(settings, llm, clock):
    return Analyzer(
        settings,
        llm=llm,
        cache=FreshCache(settings.cache_ttl_seconds, timer=clock),
        transcript_fetcher=transcript_fetcher,
        describe=no_vision,
    )


@pytest.fixture
def client(settings, analyzer):
    app = create_app(settings, analyzer, with_ui=False)
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
