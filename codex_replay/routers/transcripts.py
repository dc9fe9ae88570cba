"""Transcript loading and read-only RPC API."""
from __future__ import annotations

import logging
from typing import Any, Optional, Union

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from codex_replay import config
from codex_replay.errors import ParseError, ShapeError
from codex_replay.parsers.registry import scan_transcripts
from codex_replay.rpc import RpcError, normalize_rpc_error
from codex_replay.transcript_store import transcript_store

logger = logging.getLogger("codex_replay.api")

transcripts_router = APIRouter(prefix="/api/transcripts", tags=["transcripts"])
rpc_router = APIRouter(prefix="/api", tags=["rpc"])


class LoadTranscriptRequest(BaseModel):
    text: str
    fileName: Optional[str] = None


class RpcRequest(BaseModel):
    method: str = Field(..., min_length=1)
    params: Optional[dict[str, Any]] = None
    id: Optional[Union[int, str]] = None


@transcripts_router.post("")
async def load_transcript(payload: LoadTranscriptRequest):
    """Parse JSONL text and make it the loaded transcript."""
    if len(payload.text.encode("utf-8")) > config.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"Transcript exceeds {config.MAX_UPLOAD_BYTES} bytes",
        )
    try:
        state = transcript_store.load_text(payload.text, payload.fileName)
    except (ParseError, ShapeError) as exc:
        logger.warning("Rejected transcript %s: %s", payload.fileName or "<upload>", exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return state.to_payload()


@transcripts_router.get("/current")
async def get_current_transcript():
    """Return the loaded runtime state."""
    state = transcript_store.current
    if state is None:
        raise HTTPException(status_code=404, detail="No transcript loaded")
    return state.to_payload()


@transcripts_router.delete("/current")
async def clear_current_transcript():
    transcript_store.clear()
    return {"status": "cleared"}


@transcripts_router.get("/files")
def list_transcript_files(limit: int = Query(config.SCAN_MAX_FILES, ge=1, le=500)):
    """Summaries of the newest transcripts in the sessions directory."""
    states = scan_transcripts(config.SESSIONS_DIR, max_files=limit)
    items = [
        {
            "threadId": state.thread.id,
            "fileName": state.meta.fileName,
            "preview": state.thread.preview,
            "createdAt": state.thread.createdAt,
            "updatedAt": state.thread.updatedAt,
            "turnCount": state.meta.turnCount,
            "fallbackUsed": state.meta.fallbackUsed,
        }
        for state in states
    ]
    return {"sessionsDir": str(config.SESSIONS_DIR), "count": len(items), "items": items}


@rpc_router.post("/rpc")
async def handle_rpc(payload: RpcRequest):
    """Answer one read-only app-server method against the loaded transcript."""
    request = {"method": payload.method, "params": payload.params or {}}
    try:
        result = transcript_store.rpc.handle_request(request)
    except RpcError as exc:
        return {"id": payload.id, "error": normalize_rpc_error(exc)}
    return {"id": payload.id, "result": result}
