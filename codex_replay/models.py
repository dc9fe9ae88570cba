"""Pydantic models matching the app-server thread protocol the viewer consumes."""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union, get_args

from pydantic import BaseModel, ConfigDict, Field

ApprovalPolicy = Literal["untrusted", "on-failure", "on-request", "never"]
SessionSource = Literal["cli", "vscode", "exec", "appServer", "unknown"]
ReasoningEffort = Literal["none", "minimal", "low", "medium", "high", "xhigh"]
SandboxMode = Literal["read-only", "workspace-write", "danger-full-access"]
AgentMessagePhase = Literal["commentary", "finalAnswer"]

APPROVAL_POLICIES: frozenset[str] = frozenset(get_args(ApprovalPolicy))
SESSION_SOURCES: frozenset[str] = frozenset(get_args(SessionSource))
REASONING_EFFORTS: frozenset[str] = frozenset(get_args(ReasoningEffort))
AGENT_MESSAGE_PHASES: frozenset[str] = frozenset(get_args(AgentMessagePhase))


# ── Transcript records ──────────────────────────────────────────────

class Record(BaseModel):
    model_config = ConfigDict(frozen=True)

    lineNumber: int
    timestamp: Optional[str] = None
    type: str
    payload: Any = None
    raw: dict[str, Any] = Field(default_factory=dict)


class ParsedTranscript(BaseModel):
    text: str = ""
    totalLines: int = 0
    nonEmptyLines: int = 0
    records: list[Record] = Field(default_factory=list)
    sessionMeta: Optional[Record] = None
    sessionMetas: list[Record] = Field(default_factory=list)
    turnContexts: list[Record] = Field(default_factory=list)
    eventMsgs: list[Record] = Field(default_factory=list)
    responseItems: list[Record] = Field(default_factory=list)
    unknown: list[Record] = Field(default_factory=list)

    @property
    def latest_turn_context(self) -> Optional[Record]:
        return self.turnContexts[-1] if self.turnContexts else None


# ── Thread items ────────────────────────────────────────────────────

class TextUserInput(BaseModel):
    type: Literal["text"] = "text"
    text: str
    text_elements: list[Any] = Field(default_factory=list)


class ImageUserInput(BaseModel):
    type: Literal["image"] = "image"
    url: str


class LocalImageUserInput(BaseModel):
    type: Literal["localImage"] = "localImage"
    path: str


UserInput = Annotated[
    Union[TextUserInput, ImageUserInput, LocalImageUserInput],
    Field(discriminator="type"),
]


class UserMessageItem(BaseModel):
    type: Literal["userMessage"] = "userMessage"
    id: str
    content: list[UserInput] = Field(default_factory=list)


class AgentMessageItem(BaseModel):
    type: Literal["agentMessage"] = "agentMessage"
    id: str
    text: str = ""
    phase: Optional[AgentMessagePhase] = None


class ReasoningItem(BaseModel):
    type: Literal["reasoning"] = "reasoning"
    id: str
    summary: list[str] = Field(default_factory=list)
    content: list[str] = Field(default_factory=list)


class CommandExecutionItem(BaseModel):
    type: Literal["commandExecution"] = "commandExecution"
    id: str
    command: str = ""
    cwd: str = ""
    processId: Optional[str] = None
    status: str = "completed"
    commandActions: list[dict[str, Any]] = Field(default_factory=list)
    aggregatedOutput: Optional[str] = None
    exitCode: Optional[int] = None
    durationMs: Optional[int] = None


class FileChangeItem(BaseModel):
    type: Literal["fileChange"] = "fileChange"
    id: str
    changes: list[dict[str, Any]] = Field(default_factory=list)
    status: str = "completed"


class McpToolCallItem(BaseModel):
    type: Literal["mcpToolCall"] = "mcpToolCall"
    id: str
    server: str = ""
    tool: str = ""
    status: str = "completed"
    arguments: Any = None
    result: Optional[dict[str, Any]] = None
    error: Optional[dict[str, Any]] = None
    durationMs: Optional[int] = None


class ImageViewItem(BaseModel):
    type: Literal["imageView"] = "imageView"
    id: str
    path: str = ""


class ContextCompactionItem(BaseModel):
    type: Literal["contextCompaction"] = "contextCompaction"
    id: str


class EnteredReviewModeItem(BaseModel):
    type: Literal["enteredReviewMode"] = "enteredReviewMode"
    id: str
    review: str = ""


class ExitedReviewModeItem(BaseModel):
    type: Literal["exitedReviewMode"] = "exitedReviewMode"
    id: str
    review: str = ""


class WebSearchItem(BaseModel):
    type: Literal["webSearch"] = "webSearch"
    id: str
    query: str = ""
    action: Optional[dict[str, Any]] = None


class CollabAgentToolCallItem(BaseModel):
    type: Literal["collabAgentToolCall"] = "collabAgentToolCall"
    id: str
    tool: str = ""
    status: str = "completed"
    senderThreadId: str = ""
    receiverThreadIds: list[str] = Field(default_factory=list)
    prompt: Optional[str] = None
    agentsStates: dict[str, Any] = Field(default_factory=dict)


ThreadItem = Annotated[
    Union[
        UserMessageItem,
        AgentMessageItem,
        ReasoningItem,
        CommandExecutionItem,
        FileChangeItem,
        McpToolCallItem,
        ImageViewItem,
        ContextCompactionItem,
        EnteredReviewModeItem,
        ExitedReviewModeItem,
        WebSearchItem,
        CollabAgentToolCallItem,
    ],
    Field(discriminator="type"),
]

ITEM_TYPES: frozenset[str] = frozenset(
    {
        "userMessage",
        "agentMessage",
        "reasoning",
        "commandExecution",
        "fileChange",
        "mcpToolCall",
        "imageView",
        "contextCompaction",
        "enteredReviewMode",
        "exitedReviewMode",
        "webSearch",
        "collabAgentToolCall",
    }
)


# ── Turns and threads ───────────────────────────────────────────────

class TurnStatus(str, Enum):
    COMPLETED = "completed"
    INTERRUPTED = "interrupted"
    FAILED = "failed"
    IN_PROGRESS = "inProgress"

    @property
    def is_terminal(self) -> bool:
        return self is not TurnStatus.IN_PROGRESS


class TurnError(BaseModel):
    message: str
    additionalDetails: Optional[str] = None


class Turn(BaseModel):
    id: str
    items: list[ThreadItem] = Field(default_factory=list)
    status: TurnStatus = TurnStatus.COMPLETED
    error: Optional[TurnError] = None


class GitInfo(BaseModel):
    sha: Optional[str] = None
    branch: Optional[str] = None
    originUrl: Optional[str] = None


class ThreadStatus(BaseModel):
    type: str = "idle"


class Thread(BaseModel):
    id: str
    preview: str = ""
    modelProvider: str = "unknown"
    createdAt: int
    updatedAt: int
    status: ThreadStatus = Field(default_factory=ThreadStatus)
    path: Optional[str] = None
    cwd: str = "/"
    cliVersion: str = "unknown"
    source: SessionSource = "unknown"
    gitInfo: Optional[GitInfo] = None
    turns: list[Turn] = Field(default_factory=list)


# ── Sandbox policies ────────────────────────────────────────────────

def _full_access() -> dict[str, Any]:
    return {"type": "fullAccess"}


class ReadOnlySandbox(BaseModel):
    type: Literal["readOnly"] = "readOnly"
    access: dict[str, Any] = Field(default_factory=_full_access)


class DangerFullAccessSandbox(BaseModel):
    type: Literal["dangerFullAccess"] = "dangerFullAccess"


class WorkspaceWriteSandbox(BaseModel):
    type: Literal["workspaceWrite"] = "workspaceWrite"
    writableRoots: list[Any] = Field(default_factory=list)
    readOnlyAccess: dict[str, Any] = Field(default_factory=_full_access)
    networkAccess: bool = True
    excludeTmpdirEnvVar: bool = False
    excludeSlashTmp: bool = False


SandboxPolicy = Annotated[
    Union[ReadOnlySandbox, DangerFullAccessSandbox, WorkspaceWriteSandbox],
    Field(discriminator="type"),
]


class ThreadConfig(BaseModel):
    """Thread-level configuration derived from session metadata and turn context."""

    threadId: Optional[str] = None
    cwd: str = "/"
    cliVersion: str = "unknown"
    modelProvider: str = "unknown"
    source: SessionSource = "unknown"
    gitInfo: Optional[GitInfo] = None
    model: str = ""
    approvalPolicy: ApprovalPolicy = "never"
    sandbox: SandboxPolicy = Field(default_factory=ReadOnlySandbox)
    reasoningEffort: Optional[ReasoningEffort] = None


# ── Runtime state ───────────────────────────────────────────────────

class RuntimeMeta(BaseModel):
    fileName: Optional[str] = None
    totalLines: int = 0
    nonEmptyLines: int = 0
    turnCount: int = 0
    itemCount: int = 0
    fallbackUsed: bool = False


class RuntimeState(BaseModel):
    thread: Thread
    model: str
    modelProvider: str = "unknown"
    approvalPolicy: ApprovalPolicy = "never"
    sandbox: SandboxPolicy = Field(default_factory=ReadOnlySandbox)
    sandboxMode: SandboxMode = "read-only"
    reasoningEffort: Optional[ReasoningEffort] = None
    meta: RuntimeMeta = Field(default_factory=RuntimeMeta)

    def to_payload(self) -> dict[str, Any]:
        """Plain JSON-ready copy with no model behavior attached."""
        return self.model_dump(mode="json")
