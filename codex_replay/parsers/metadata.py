"""Derive thread-level metadata and configuration from classified records."""
from __future__ import annotations

from typing import Any, Iterable, Optional

from codex_replay.date_utils import now_unix_seconds, to_unix_seconds
from codex_replay.models import (
    APPROVAL_POLICIES,
    REASONING_EFFORTS,
    SESSION_SOURCES,
    DangerFullAccessSandbox,
    GitInfo,
    ReadOnlySandbox,
    Record,
    ThreadConfig,
    Turn,
    UserMessageItem,
    WorkspaceWriteSandbox,
)
from codex_replay.parsers.aliases import as_object, first_present

_DANGER_FULL_ACCESS_TAGS = {"dangerFullAccess", "danger-full-access"}
_READ_ONLY_TAGS = {"readOnly", "read-only"}
_WORKSPACE_WRITE_TAGS = {"workspaceWrite", "workspace-write"}


def timestamp_range(records: Iterable[Record]) -> tuple[int, int]:
    """Earliest and latest parsable record timestamps, in unix seconds.

    Falls back to the current time for both bounds when nothing parses.
    """
    seconds = [value for value in (to_unix_seconds(r.timestamp) for r in records) if value is not None]
    if not seconds:
        now = now_unix_seconds()
        return now, now
    return min(seconds), max(seconds)


def _closed_enum(value: Any, allowed: frozenset[str], default: Optional[str]) -> Optional[str]:
    if isinstance(value, str) and value in allowed:
        return value
    return default


def normalize_source(value: Any) -> str:
    return _closed_enum(value, SESSION_SOURCES, "unknown")


def normalize_approval_policy(value: Any) -> str:
    return _closed_enum(value, APPROVAL_POLICIES, "never")


def normalize_reasoning_effort(value: Any) -> Optional[str]:
    return _closed_enum(value, REASONING_EFFORTS, None)


def normalize_git_info(value: Any) -> Optional[GitInfo]:
    git = as_object(value)
    if git is None:
        return None
    return GitInfo(
        sha=first_present(git, "sha", "commit_hash"),
        branch=first_present(git, "branch"),
        originUrl=first_present(git, "originUrl", "repository_url"),
    )


def normalize_sandbox_policy(value: Any, cwd: str):
    """Accept the short string forms and structured policies in either casing.

    Anything unrecognised degrades to read-only with full read access.
    """
    if isinstance(value, str):
        if value == "danger-full-access":
            return DangerFullAccessSandbox()
        if value == "workspace-write":
            return WorkspaceWriteSandbox(writableRoots=[cwd])
        return ReadOnlySandbox()

    policy = as_object(value)
    tag = first_present(policy, "type")
    if tag in _DANGER_FULL_ACCESS_TAGS:
        return DangerFullAccessSandbox()
    if tag in _READ_ONLY_TAGS:
        access = as_object(policy.get("access"))
        return ReadOnlySandbox(access=access) if access is not None else ReadOnlySandbox()
    if tag in _WORKSPACE_WRITE_TAGS:
        read_only_access = first_present(policy, "readOnlyAccess", "read_only_access", kind=dict)
        return WorkspaceWriteSandbox(
            writableRoots=first_present(policy, "writableRoots", "writable_roots", kind=list, default=[cwd]),
            readOnlyAccess=read_only_access if read_only_access is not None else {"type": "fullAccess"},
            networkAccess=first_present(policy, "networkAccess", "network_access", kind=bool, default=True),
            excludeTmpdirEnvVar=first_present(
                policy, "excludeTmpdirEnvVar", "exclude_tmpdir_env_var", kind=bool, default=False
            ),
            excludeSlashTmp=first_present(policy, "excludeSlashTmp", "exclude_slash_tmp", kind=bool, default=False),
        )
    return ReadOnlySandbox()


def sandbox_mode_from_policy(policy: Any) -> str:
    tag = getattr(policy, "type", None)
    if tag is None:
        tag = first_present(as_object(policy), "type")
    if tag == "dangerFullAccess":
        return "danger-full-access"
    if tag == "workspaceWrite":
        return "workspace-write"
    return "read-only"


def find_first_user_preview(turns: Iterable[Turn]) -> str:
    """First non-blank text part of the first user message that has one."""
    for turn in turns:
        for item in turn.items:
            if not isinstance(item, UserMessageItem):
                continue
            for part in item.content:
                if part.type == "text":
                    text = part.text.strip()
                    if text:
                        return text
    return ""


def normalize_thread_config(
    session_meta: Optional[dict[str, Any]],
    turn_context: Optional[dict[str, Any]],
    *,
    default_model: str,
) -> ThreadConfig:
    """Combine the first session_meta and the last turn_context payloads."""
    meta = session_meta or {}
    context = turn_context or {}
    cwd = first_present(meta, "cwd", default="/")
    model = first_present(context, "model", default="")

    return ThreadConfig(
        threadId=first_present(meta, "id"),
        cwd=cwd,
        cliVersion=first_present(meta, "cli_version", "cliVersion", default="unknown"),
        modelProvider=first_present(meta, "model_provider", "modelProvider", default="unknown"),
        source=normalize_source(meta.get("source")),
        gitInfo=normalize_git_info(meta.get("git")),
        model=model or default_model,
        approvalPolicy=normalize_approval_policy(first_present(context, "approval_policy", "approvalPolicy")),
        sandbox=normalize_sandbox_policy(
            first_present(context, "sandbox_policy", "sandboxPolicy", kind=(str, dict)), cwd
        ),
        reasoningEffort=normalize_reasoning_effort(first_present(context, "effort", "reasoningEffort")),
    )
