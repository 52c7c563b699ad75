import logging

import gradio as gr
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatpye import __version__, api, redirects
from chatpye.analysis import Analyzer
from chatpye.config import Settings
from chatpye.ui import build_ui

logger = logging.getLogger("chatpye")


def create_app(settings: Settings = None, analyzer: Analyzer = None, with_ui: bool = True) -> FastAPI:
    settings = settings or Settings.from_env()
    analyzer = analyzer or Analyzer(settings)

    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set; analysis requests will fail until it is configured")

    app = FastAPI(title="ChatPye", version=__version__)
    app.state.settings = settings
    app.state.analyzer = analyzer
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["GET", "POST", "OPTIONS"], allow_headers=["*"])
    redirects.install_canonical_redirects(app, settings)
    api.install_error_handlers(app)
    app.include_router(api.router)
    app.include_router(redirects.router)

    if with_ui:
        app = gr.mount_gradio_app(app, build_ui(analyzer).queue(), path="/")
    return app


if __name__ == "__main__":
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
