import logging
from typing import Dict, List, Tuple

import gradio as gr

from .analysis import Analyzer
from .errors import ChatPyeError
from .prompts import QUICK_ACTIONS
from .youtube import VideoInfo, canonical_url, extract_video_id, find_first_youtube_url

logger = logging.getLogger(__name__)

EMPTY_VIDEO = {"url": "", "video_id": "", "info": {}}


def make_video_info_md(info: VideoInfo) -> str:
    lines = []
    if info.title:
        lines.append(f"**Title**: {info.title}")
    if info.channel:
        lines.append(f"**Channel**: {info.channel}")
    stats = " · ".join(s for s in (f"{info.views} views" if info.views else "", info.published_at) if s)
    if stats:
        lines.append(stats)
    if info.thumbnail:
        lines.append(f"![]({info.thumbnail})")
    return "\n\n".join(lines)


def _returns(value):
    return lambda: value


def chat_memory(chat: List[Dict]) -> List[Dict[str, str]]:
    """Plain-text turns of the chat, usable as model history."""
    return [
        {"role": m["role"], "content": m["content"]}
        for m in chat or []
        if m.get("role") in ("user", "assistant") and isinstance(m.get("content"), str)
    ]


def build_ui(analyzer: Analyzer) -> gr.Blocks:
    async def on_load_video(url: str, video: Dict) -> Tuple[List[Dict], Dict, str]:
        url = (url or "").strip()
        url = find_first_youtube_url(url) or url
        video_id = extract_video_id(url)
        if not video_id:
            gr.Warning("Please enter a valid YouTube URL")
            return [], video, url
        try:
            info = await analyzer.video_info(video_id)
        except ChatPyeError as e:
            logger.error("Error getting video info for %s: %s", url, e.message)
            gr.Warning(e.message)
            return [], dict(EMPTY_VIDEO), url

        card = make_video_info_md(info) or f"Loaded video `{video_id}`."
        chat = [{"role": "assistant", "content": card + "\n\nYou can now ask questions about the video."}]
        return chat, {"url": url, "video_id": video_id, "info": info.to_dict()}, url

    async def on_send(message: str, chat: List[Dict], video: Dict):
        message = (message or "").strip()
        chat = list(chat or [])
        if not message:
            yield "", chat
            return
        if not video.get("url"):
            chat += [
                {"role": "user", "content": message},
                {"role": "assistant", "content": "No video URL provided. Please enter a YouTube URL first."},
            ]
            yield "", chat
            return

        history = chat_memory(chat)
        chat += [{"role": "user", "content": message}, {"role": "assistant", "content": ""}]
        yield "", chat

        try:
            stream = await analyzer.stream_analysis(video["url"], message, history=history)
            async for chunk in stream:
                chat[-1] = {"role": "assistant", "content": chat[-1]["content"] + chunk}
                yield "", chat
        except ChatPyeError as e:
            chat[-1] = {
                "role": "assistant",
                "content": f"I apologize, but I encountered an error: {e.message}. "
                           "Please try again or try a different video.",
            }
            yield "", chat

    async def on_page_load(video: Dict, request: gr.Request):
        video_id = request.query_params.get("videoId") if request else None
        if not video_id:
            return [], video, ""
        return await on_load_video(canonical_url(video_id), video)

    def on_clear() -> List[Dict]:
        return []

    with gr.Blocks(title="ChatPye", theme=gr.themes.Soft(primary_hue=gr.themes.colors.indigo)) as demo:
        gr.Markdown("""### ChatPye
        Paste a YouTube URL, then ask anything about the video.
        """)

        video_state = gr.State(value=dict(EMPTY_VIDEO))

        with gr.Row():
            url_box = gr.Textbox(label="YouTube URL", placeholder="https://www.youtube.com/watch?v=...", scale=5)
            load_btn = gr.Button("Load video", variant="primary", scale=1)

        chatbot = gr.Chatbot(label="", type="messages", height=520, show_copy_button=True)

        with gr.Row():
            action_btns = [gr.Button(label, variant="secondary", size="sm") for label in QUICK_ACTIONS]

        with gr.Row():
            txt = gr.Textbox(label="Ask", placeholder="Ask a question about the video...", lines=2, scale=5)
            with gr.Column(scale=1):
                clear_btn = gr.Button("Clear chat", variant="secondary")
                send_btn = gr.Button("Send", variant="primary")

        # Bind events
        load_btn.click(fn=on_load_video, inputs=[url_box, video_state], outputs=[chatbot, video_state, url_box])
        url_box.submit(fn=on_load_video, inputs=[url_box, video_state], outputs=[chatbot, video_state, url_box])
        txt.submit(fn=on_send, inputs=[txt, chatbot, video_state], outputs=[txt, chatbot])
        send_btn.click(fn=on_send, inputs=[txt, chatbot, video_state], outputs=[txt, chatbot])
        clear_btn.click(fn=on_clear, inputs=None, outputs=[chatbot])

        for btn, prompt in zip(action_btns, QUICK_ACTIONS.values()):
            btn.click(fn=_returns(prompt), inputs=None, outputs=[txt]).then(
                fn=on_send, inputs=[txt, chatbot, video_state], outputs=[txt, chatbot]
            )

        demo.load(fn=on_page_load, inputs=[video_state], outputs=[chatbot, video_state, url_box])

    return demo
