import asyncio

import pytest
from conftest import VIDEO_ID, VIDEO_URL, FakeLLM
from youtube_transcript_api._errors import TranscriptsDisabled

from chatpye.analysis import Analyzer
from chatpye.cache import FreshCache
from chatpye.config import Settings
from chatpye.errors import InvalidRequestError, MissingCredentialError
from chatpye.prompts import quick_action_prompt
from chatpye.ui import chat_memory


async def answer(analyzer, url, prompt, history=None):
    stream = await analyzer.stream_analysis(url, prompt, history=history)
    return "".join([chunk async for chunk in stream])


def user_prompt(llm, call=-1):
    return llm.calls[call][-1]["content"]


def test_stream_analysis_uses_transcript(analyzer, llm):
    assert asyncio.run(answer(analyzer, VIDEO_URL, "What is this about?")) == "Hello world"
    prompt = user_prompt(llm)
    assert "What is this about?" in prompt
    assert "never gonna give you up" in prompt
    assert llm.sources[0].closed == 1


def test_second_identical_question_is_served_from_cache(analyzer, llm):
    asyncio.run(answer(analyzer, VIDEO_URL, "What is this about?"))
    again = asyncio.run(answer(analyzer, "https://youtu.be/" + VIDEO_ID, "What is this about?"))

    assert again == "Hello world"
    assert len(llm.calls) == 1


def test_expired_cache_asks_the_model_again(analyzer, llm, clock, settings):
    asyncio.run(answer(analyzer, VIDEO_URL, "What is this about?"))
    clock.advance(settings.cache_ttl_seconds + 1)
    asyncio.run(answer(analyzer, VIDEO_URL, "What is this about?"))

    assert len(llm.calls) == 2


def test_history_bypasses_cache(analyzer, llm):
    history = [{"role": "user", "content": "earlier"}, {"role": "assistant", "content": "reply"}]
    asyncio.run(answer(analyzer, VIDEO_URL, "And then?", history=history))
    asyncio.run(answer(analyzer, VIDEO_URL, "And then?", history=history))

    assert len(llm.calls) == 2
    assert llm.calls[0][1:3] == history


def test_video_card_history_still_uses_cache(analyzer, llm):
    card = chat_memory([{"role": "assistant", "content": "**Never Gonna Give You Up**\nRick Astley"}])
    prompt = quick_action_prompt("Summary")
    first = asyncio.run(answer(analyzer, VIDEO_URL, prompt, history=card))
    second = asyncio.run(answer(analyzer, VIDEO_URL, prompt, history=card))

    assert first == second == "Hello world"
    assert len(llm.calls) == 1


def test_failed_stream_is_not_cached(analyzer, llm):
    llm.stream_error = RuntimeError("boom")
    text = asyncio.run(answer(analyzer, VIDEO_URL, "Q"))
    assert text.endswith("Error: boom")

    llm.stream_error = None
    asyncio.run(answer(analyzer, VIDEO_URL, "Q"))
    assert len(llm.calls) == 2


@pytest.mark.parametrize("url,prompt", [("", "Q"), (VIDEO_URL, ""), (VIDEO_URL, "   "), (None, None)])
def test_missing_fields(analyzer, url, prompt):
    with pytest.raises(InvalidRequestError):
        asyncio.run(analyzer.stream_analysis(url, prompt))


def test_invalid_url(analyzer):
    with pytest.raises(InvalidRequestError) as exc:
        asyncio.run(analyzer.stream_analysis("https://vimeo.com/1", "Q"))
    assert exc.value.message == "Invalid YouTube URL"


def test_missing_key_raises_before_streaming(llm):
    analyzer = Analyzer(Settings(gemini_api_key=None), llm=llm)
    with pytest.raises(MissingCredentialError):
        asyncio.run(analyzer.stream_analysis(VIDEO_URL, "Q"))
    assert llm.calls == []


def test_vision_fallback_when_no_transcript(settings):
    def no_transcript(video_id):
        raise TranscriptsDisabled(video_id)

    seen = []

    async def describe(url, settings):
        seen.append(url)
        return "A man sings and dances."

    llm = FakeLLM()
    analyzer = Analyzer(settings, llm=llm, cache=FreshCache(60), transcript_fetcher=no_transcript, describe=describe)

    asyncio.run(answer(analyzer, VIDEO_URL, "Who sings?"))
    asyncio.run(answer(analyzer, VIDEO_URL, "Who dances?"))

    assert seen == [VIDEO_URL]
    assert "A man sings and dances." in user_prompt(llm)


def test_no_context_at_all_still_answers(settings):
    def no_transcript(video_id):
        raise TranscriptsDisabled(video_id)

    async def no_vision(url, settings):
        return ""

    llm = FakeLLM()
    analyzer = Analyzer(settings, llm=llm, cache=FreshCache(60), transcript_fetcher=no_transcript, describe=no_vision)

    assert asyncio.run(answer(analyzer, VIDEO_URL, "Q")) == "Hello world"
    assert "Transcript" not in user_prompt(llm)


def test_overview_then_cached(analyzer, llm, monkeypatch):
    monkeypatch.setattr("chatpye.analysis.time.time", lambda: 1700000000.0)
    monkeypatch.setattr("chatpye.analysis.fetch_oembed",
                        lambda url: {"title": "Never Gonna Give You Up", "author_name": "Rick Astley"})

    first = asyncio.run(analyzer.overview(VIDEO_URL))
    assert first["status"] == "processing"
    assert first["initialAnalysis"] == "An overview."
    assert "Never Gonna Give You Up" in user_prompt(llm)

    second = asyncio.run(analyzer.overview(VIDEO_URL))
    assert second["status"] == "completed"
    assert second["analysis"]["analysis"] == "An overview."
    assert second["analysis"]["videoInfo"]["channel"] == "Rick Astley"
    assert second["analysis"]["timestamp"] == 1700000000000
    assert len(llm.calls) == 1


def test_warm_fills_context_cache(analyzer):
    asyncio.run(analyzer.warm(VIDEO_ID))
    assert analyzer.cache.get(f"context:{VIDEO_ID}").extra == {"source": "transcript"}
