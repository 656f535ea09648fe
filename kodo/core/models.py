from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Literal, Protocol

from kodo.session.models import Message
from kodo.tools.core.base import ToolResult
from kodo.tools.core.enums import ApprovalCategory
from kodo.usage import Usage

if TYPE_CHECKING:
    from kodo.llm.models import ModelInfo
    from kodo.tools.core.context import ToolContext
    from kodo.tools.core.registry import ToolRegistry


class TaskKind(StrEnum):
    SEND = "send"
    PLAN = "plan"


type CancelCheck = Callable[[], bool]


@dataclass(frozen=True)
class ToolUse:
    name: str
    params: dict
    call_id: str


@dataclass(frozen=True)
class StreamResult:
    """Structured record of one model request, success or failure."""

    request_id: str
    prompt: list[dict]
    model: str
    tools: list[str]
    request: dict | None = None
    response: dict | None = None
    error: str | None = None


@dataclass(frozen=True)
class TaskError:
    message: str
    code: str = "error"
    details: dict | None = None

    def to_dict(self) -> dict:
        return {"message": self.message, "code": self.code, "details": self.details}


# --- Callbacks ---

type OnMessage = Callable[[Message], Awaitable[None]]
type OnToolApprove = Callable[[ToolUse, ApprovalCategory | None], Awaitable[bool]]
type OnTextDelta = Callable[[str], Awaitable[None]]
type OnChunk = Callable[[Any, str], Awaitable[None]]
type OnStreamResult = Callable[[StreamResult], Awaitable[None]]


@dataclass(frozen=True)
class TaskCallbacks:
    """Caller hooks. Every one is optional."""

    on_message: OnMessage | None = None
    on_tool_approve: OnToolApprove | None = None
    on_text_delta: OnTextDelta | None = None
    on_chunk: OnChunk | None = None
    on_stream_result: OnStreamResult | None = None


@dataclass(frozen=True)
class EngineCallbacks:
    """Handlers the execution engine must await, in emission order."""

    on_message: Callable[[Message], Awaitable[None]]
    on_text_delta: Callable[[str], Awaitable[None]]
    on_chunk: Callable[[Any, str], Awaitable[None]]
    on_stream_result: Callable[[StreamResult], Awaitable[None]]
    on_tool_use: Callable[[ToolUse], Awaitable[ToolUse]]
    on_tool_result: Callable[[ToolUse, ToolResult], Awaitable[ToolResult]]
    on_tool_approve: Callable[[ToolUse], Awaitable[bool]]


# --- Requests and results ---


@dataclass(frozen=True)
class TaskRequest:
    kind: TaskKind
    message: str | None
    attachments: list[dict] = field(default_factory=list)
    parent_uuid: str | None = None
    model: str | None = None
    thinking_effort: Literal["low", "medium", "high"] | None = None
    cancel_check: CancelCheck | None = None
    callbacks: TaskCallbacks = field(default_factory=TaskCallbacks)


@dataclass(frozen=True)
class EngineSuccess:
    text: str
    history: list[Message]
    usage: Usage
    success: Literal[True] = True


@dataclass(frozen=True)
class EngineFailure:
    error: TaskError
    success: Literal[False] = False


type EngineResult = EngineSuccess | EngineFailure


class ExecutionEngine(Protocol):
    async def run(
        self,
        *,
        input: list[Message],
        model: "ModelInfo",
        tools: "ToolRegistry",
        system_prompt: str,
        tool_context: "ToolContext",
        callbacks: EngineCallbacks,
        cancel_check: CancelCheck | None = None,
        thinking: dict | None = None,
    ) -> EngineResult: ...


@dataclass(frozen=True)
class TaskMetadata:
    turns_count: int
    tool_calls_count: int
    duration_ms: int


@dataclass(frozen=True)
class TaskData:
    text: str
    history: list[Message]
    usage: Usage


@dataclass(frozen=True)
class TaskSuccess:
    data: TaskData
    metadata: TaskMetadata
    success: Literal[True] = True

    def to_dict(self) -> dict:
        return {
            "success": True,
            "data": {
                "text": self.data.text,
                "history": [m.to_dict() for m in self.data.history],
                "usage": self.data.usage.to_dict(),
            },
            "metadata": {
                "turnsCount": self.metadata.turns_count,
                "toolCallsCount": self.metadata.tool_calls_count,
                "duration": self.metadata.duration_ms,
            },
        }


@dataclass(frozen=True)
class TaskFailure:
    error: TaskError
    success: Literal[False] = False

    def to_dict(self) -> dict:
        return {"success": False, "error": self.error.to_dict()}


type TaskResult = TaskSuccess | TaskFailure
