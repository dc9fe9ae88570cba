"""codex-replay FastAPI backend: main application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from codex_replay import config
from codex_replay.errors import ParseError
from codex_replay.file_watcher import transcript_watcher
from codex_replay.observability import initialize as initialize_observability, shutdown as shutdown_observability
from codex_replay.routers.transcripts import rpc_router, transcripts_router
from codex_replay.transcript_store import transcript_store

logging.basicConfig(level=getattr(logging, config.LOG_LEVEL, logging.INFO))
logger = logging.getLogger("codex_replay")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("codex-replay backend starting up")
    initialize_observability(app)

    transcript_path = config.TRANSCRIPT_PATH
    if transcript_path is not None:
        try:
            transcript_store.load_file(transcript_path)
        except (OSError, UnicodeDecodeError, ParseError) as exc:
            logger.error("Could not load startup transcript %s: %s", transcript_path, exc)
        if config.WATCH_TRANSCRIPT:
            await transcript_watcher.start(transcript_store, transcript_path)

    yield

    logger.info("codex-replay backend shutting down")
    await transcript_watcher.stop()
    shutdown_observability(app)


app = FastAPI(
    title="codex-replay API",
    description="Read-only replay of Codex session transcripts",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:31340",
        "http://127.0.0.1:31340",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(transcripts_router)
app.include_router(rpc_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    state = transcript_store.current
    return {
        "status": "ok",
        "transcript": state.thread.id if state else None,
        "watcher": "running" if transcript_watcher.is_running else "stopped",
    }


def run() -> None:
    import uvicorn

    uvicorn.run("codex_replay.main:app", host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    run()
