"""Read-only RPC projection over a loaded runtime state.

Answers the app-server methods a thread viewer issues by projecting fields
out of the runtime state. Methods that would mutate a thread or account are
rejected; the viewer never talks to a live agent.
"""
from __future__ import annotations

import copy
import logging
from typing import Any, Optional

from codex_replay import config
from codex_replay.models import RuntimeState
from codex_replay.observability import record_rpc_call
from codex_replay.parsers.metadata import sandbox_mode_from_policy

logger = logging.getLogger("codex_replay.rpc")

READONLY_MESSAGE = "Readonly transcript viewer"

INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
SERVER_ERROR = -32000
NO_TRANSCRIPT_LOADED = -32001

MUTATING_METHODS = frozenset(
    {
        "turn/start",
        "turn/interrupt",
        "thread/start",
        "thread/fork",
        "thread/archive",
        "thread/unarchive",
        "thread/rollback",
        "config/value/write",
        "config/batchWrite",
        "skills/config/write",
        "feedback/upload",
        "account/logout",
        "account/login/start",
        "account/login/cancel",
        "mcpServer/oauth/login",
        "thread/name/write",
        "thread/name/update",
        "thread/setName",
    }
)

_EMPTY_PAGE = {"data": [], "nextCursor": None}


class RpcError(Exception):
    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


def normalize_rpc_error(error: BaseException) -> dict[str, Any]:
    if isinstance(error, RpcError):
        return {"code": error.code, "message": error.message, "data": error.data}
    return {"code": SERVER_ERROR, "message": str(error)}


def infer_sandbox_mode(runtime_state: Optional[dict[str, Any]]) -> str:
    return sandbox_mode_from_policy((runtime_state or {}).get("sandbox"))


class RpcAdapter:
    """Holds one runtime state and answers read-only requests against it.

    State goes in and results come out as deep copies, so callers can never
    mutate the loaded transcript through a response.
    """

    def __init__(self) -> None:
        self._runtime_state: Optional[dict[str, Any]] = None

    def set_runtime_state(self, runtime_state: RuntimeState | dict[str, Any] | None) -> None:
        if runtime_state is None:
            self._runtime_state = None
        elif isinstance(runtime_state, RuntimeState):
            self._runtime_state = runtime_state.to_payload()
        else:
            self._runtime_state = copy.deepcopy(runtime_state)

    def get_runtime_state(self) -> Optional[dict[str, Any]]:
        return copy.deepcopy(self._runtime_state)

    def handle_request(self, request: Any) -> Any:
        if not isinstance(request, dict):
            raise RpcError(INVALID_REQUEST, "Invalid request")

        method = request.get("method")
        method = method if isinstance(method, str) else str(method)
        params = request.get("params")
        if not isinstance(params, dict):
            params = {}

        try:
            result = self._dispatch(method, params)
        except RpcError as exc:
            record_rpc_call(method, "error")
            logger.debug("RPC %s failed: %s", method, exc.message)
            raise
        record_rpc_call(method, "ok")
        return result

    def _dispatch(self, method: str, params: dict[str, Any]) -> Any:
        if method in MUTATING_METHODS:
            raise RpcError(SERVER_ERROR, f"{READONLY_MESSAGE}: {method} is disabled")

        if method.startswith("fuzzyFileSearch/"):
            return self._fuzzy_file_search(method, params)

        if method == "thread/list":
            return self._thread_list()
        if method == "thread/loaded/list":
            return self._thread_loaded_list()
        if method == "thread/read":
            thread = self._require_thread(params.get("threadId"))
            return {"thread": self._clone_thread(thread, bool(params.get("includeTurns")))}
        if method == "thread/resume":
            return self._thread_resume(params)
        if method == "thread/backgroundTerminals/clean":
            return {}
        if method == "model/list":
            return self._model_list()
        if method == "config/read":
            return self._config_read()
        if method == "configRequirements/read":
            return {"requirements": None}
        if method == "account/read":
            return {"account": None, "requiresOpenaiAuth": False}
        if method == "skills/list":
            return {"data": []}
        if method in ("app/list", "mcpServerStatus/list", "experimentalFeature/list"):
            return dict(_EMPTY_PAGE)
        if method == "collaborationMode/list":
            return {
                "data": [
                    {
                        "mode": "default",
                        "displayName": "Default",
                        "description": "Default collaboration mode",
                    }
                ],
                "nextCursor": None,
            }
        if method == "gitDiffToRemote":
            return {"commits": [], "files": []}
        raise RpcError(METHOD_NOT_FOUND, f"Unsupported method: {method}")

    # ── method handlers ────────────────────────────────────────────

    def _fuzzy_file_search(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        if method == "fuzzyFileSearch/sessionStop":
            return {}
        session_id = params.get("sessionId")
        query = params.get("query")
        return {
            "sessionId": session_id if isinstance(session_id, str) and session_id else "readonly-session",
            "query": query if isinstance(query, str) else "",
            "results": [],
            "done": True,
        }

    def _thread_list(self) -> dict[str, Any]:
        thread = (self._runtime_state or {}).get("thread")
        if not thread:
            return dict(_EMPTY_PAGE)
        return {"data": [self._clone_thread(thread, False)], "nextCursor": None}

    def _thread_loaded_list(self) -> dict[str, Any]:
        thread = (self._runtime_state or {}).get("thread") or {}
        if not thread.get("id"):
            return dict(_EMPTY_PAGE)
        return {"data": [thread["id"]], "nextCursor": None}

    def _thread_resume(self, params: dict[str, Any]) -> dict[str, Any]:
        thread = self._require_thread(params.get("threadId"))
        runtime = self._require_runtime()
        return {
            "thread": self._clone_thread(thread, True),
            "model": runtime.get("model"),
            "modelProvider": runtime.get("modelProvider"),
            "cwd": thread.get("cwd"),
            "approvalPolicy": runtime.get("approvalPolicy"),
            "sandbox": copy.deepcopy(runtime.get("sandbox")),
            "reasoningEffort": runtime.get("reasoningEffort"),
        }

    def _model_list(self) -> dict[str, Any]:
        model = (self._runtime_state or {}).get("model") or config.DEFAULT_MODEL
        return {
            "data": [
                {
                    "id": model,
                    "model": model,
                    "upgrade": None,
                    "displayName": model,
                    "description": "Model inferred from transcript metadata.",
                    "hidden": False,
                    "supportedReasoningEfforts": [],
                    "defaultReasoningEffort": "medium",
                    "inputModalities": ["text"],
                    "supportsPersonality": True,
                    "isDefault": True,
                }
            ],
            "nextCursor": None,
        }

    def _config_read(self) -> dict[str, Any]:
        runtime = self._runtime_state or {}
        config_values = {
            "model": runtime.get("model") or None,
            "review_model": None,
            "model_context_window": None,
            "model_auto_compact_token_limit": None,
            "model_provider": runtime.get("modelProvider") or None,
            "approval_policy": runtime.get("approvalPolicy") or "never",
            "sandbox_mode": runtime.get("sandboxMode") or "read-only",
            "sandbox_workspace_write": None,
            "forced_chatgpt_workspace_id": None,
            "forced_login_method": None,
            "web_search": None,
            "tools": None,
            "profile": None,
            "profiles": {},
            "instructions": None,
            "developer_instructions": None,
            "compact_prompt": None,
            "model_reasoning_effort": runtime.get("reasoningEffort") or None,
            "model_reasoning_summary": None,
            "model_verbosity": None,
            "analytics": None,
        }
        return {"config": config_values, "origins": {}, "layers": None}

    # ── helpers ────────────────────────────────────────────────────

    def _require_runtime(self) -> dict[str, Any]:
        if not self._runtime_state or not self._runtime_state.get("thread"):
            raise RpcError(NO_TRANSCRIPT_LOADED, "No transcript loaded. Load a JSONL transcript first.")
        return self._runtime_state

    def _require_thread(self, thread_id: Any) -> dict[str, Any]:
        runtime = self._require_runtime()
        thread = runtime["thread"]
        if isinstance(thread_id, str) and thread_id:
            normalized = thread_id.removeprefix("local:")
            if normalized != thread.get("id"):
                # Only one thread is ever loaded; route-local aliases still resolve to it.
                logger.debug("Thread id %r does not match loaded thread %r", thread_id, thread.get("id"))
        return thread

    @staticmethod
    def _clone_thread(thread: dict[str, Any], include_turns: bool) -> dict[str, Any]:
        clone = copy.deepcopy(thread)
        if not include_turns:
            clone["turns"] = []
        if not isinstance(clone.get("status"), dict):
            clone["status"] = {"type": "idle"}
        if not clone.get("cwd"):
            clone["cwd"] = "/"
        if not clone.get("modelProvider"):
            clone["modelProvider"] = "unknown"
        return clone
