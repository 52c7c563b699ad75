import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from .analysis import Analyzer
from .errors import ChatPyeError, InvalidRequestError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


class AnalyzeRequest(BaseModel):
    youtubeUrl: Optional[str] = None
    prompt: Optional[str] = None


class VideoRequest(BaseModel):
    youtubeUrl: Optional[str] = None


def get_analyzer(request: Request) -> Analyzer:
    return request.app.state.analyzer


@router.post("/analyze")
async def analyze(body: AnalyzeRequest, analyzer: Analyzer = Depends(get_analyzer)):
    stream = await analyzer.stream_analysis(body.youtubeUrl, body.prompt)
    return StreamingResponse(
        stream,
        media_type="text/plain; charset=utf-8",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/video-info")
async def video_info(body: VideoRequest, analyzer: Analyzer = Depends(get_analyzer)):
    if not body.youtubeUrl:
        raise InvalidRequestError("YouTube URL is required")
    video_id = analyzer.require_video_id(body.youtubeUrl)
    info = await analyzer.video_info(video_id)
    return info.to_dict()


@router.post("/process-video")
async def process_video(body: VideoRequest, background_tasks: BackgroundTasks,
                        analyzer: Analyzer = Depends(get_analyzer)):
    result = await analyzer.overview(body.youtubeUrl)
    if result["status"] == "processing":
        background_tasks.add_task(analyzer.warm, result["videoId"])
    return result


@router.get("/health")
async def health():
    return {"status": "ok"}


def install_error_handlers(app: FastAPI):
    @app.exception_handler(ChatPyeError)
    async def chatpye_error_handler(request: Request, exc: ChatPyeError):
        logger.error("%s %s failed (%s): %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.error("%s %s rejected: %s", request.method, request.url.path, exc.errors())
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Error in %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to process request", "details": str(exc)},
        )
