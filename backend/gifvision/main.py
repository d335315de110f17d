"""
GifVision render service.

Wires settings, the media repository and the render scheduler into a
FastAPI application. Run with:

    python -m gifvision.main

Binds to localhost by default; GIFVISION_HOST / GIFVISION_PORT override.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .jobs.scheduler import RenderScheduler
from .media.repository import FileSystemMediaRepository
from .routes import render
from .settings import RenderSettings, load_settings

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8086


def create_app(
    settings: Optional[RenderSettings] = None,
    scheduler: Optional[RenderScheduler] = None,
) -> FastAPI:
    """
    Create the render API application.

    Args:
        settings: Resolved settings. Loaded from the environment if not provided.
        scheduler: Pre-built scheduler (tests inject one with a fake runner).
    """
    if scheduler is None:
        settings = settings or load_settings()
        repository = FileSystemMediaRepository(settings.media_store_dir)
        scheduler = RenderScheduler(settings, repository=repository)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.scheduler.shutdown(wait=False)

    app = FastAPI(title="GifVision Render API", version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.scheduler = scheduler

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "ffmpeg_available": scheduler.runner.available,
        }

    app.include_router(render.router)
    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None) -> None:
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S'
    )
    host = host or os.environ.get("GIFVISION_HOST", DEFAULT_HOST)
    port = port or int(os.environ.get("GIFVISION_PORT", DEFAULT_PORT))
    logger.info(f"Starting GifVision render API on {host}:{port}")
    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    run_server()
