import asyncio
from types import SimpleNamespace

import httpx
from conftest import VIDEO_URL, FakeLLM
from youtube_transcript_api._errors import TranscriptsDisabled

from chatpye import vision
from chatpye.analysis import Analyzer
from chatpye.cache import FreshCache
from chatpye.vision import describe_video


def fake_client(outcome, calls=None):
    async def generate_content(**kwargs):
        if calls is not None:
            calls.append(kwargs)
        if isinstance(outcome, Exception):
            raise outcome
        return SimpleNamespace(text=outcome)

    class FakeClient:
        def __init__(self, api_key=None):
            self.api_key = api_key
            self.aio = SimpleNamespace(models=SimpleNamespace(generate_content=generate_content))

    return FakeClient


def test_describe_video_sends_url_as_file_part(monkeypatch, settings):
    calls = []
    monkeypatch.setattr(vision.genai, "Client", fake_client("A cat plays piano.", calls))

    assert asyncio.run(describe_video(VIDEO_URL, settings)) == "A cat plays piano."
    parts = calls[0]["contents"].parts
    assert parts[0].file_data.file_uri == VIDEO_URL
    assert calls[0]["model"] == settings.vision_model


def test_describe_video_network_failure_returns_empty(monkeypatch, settings):
    monkeypatch.setattr(vision.genai, "Client", fake_client(httpx.ConnectError("offline")))

    assert asyncio.run(describe_video(VIDEO_URL, settings)) == ""


def test_analysis_answers_when_vision_is_unreachable(monkeypatch, settings):
    monkeypatch.setattr(vision.genai, "Client", fake_client(httpx.ConnectError("offline")))

    def no_transcript(video_id):
        raise TranscriptsDisabled(video_id)

    llm = FakeLLM()
    analyzer = Analyzer(settings, llm=llm, cache=FreshCache(60), transcript_fetcher=no_transcript,
                        describe=describe_video)

    async def answer():
        stream = await analyzer.stream_analysis(VIDEO_URL, "Q")
        return "".join([chunk async for chunk in stream])

    assert asyncio.run(answer()) == "Hello world"
