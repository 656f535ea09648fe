from dataclasses import dataclass
from typing import Any

from kodo.usage import Usage


@dataclass(frozen=True)
class FunctionCall:
    name: str
    arguments: str


@dataclass(frozen=True)
class ToolCall:
    id: str
    type: str  # always "function"
    function: FunctionCall


@dataclass(frozen=True)
class Message:
    role: str
    content: str | None
    tool_calls: list[ToolCall] | None
    reasoning_content: str | None = None


@dataclass(frozen=True)
class Choice:
    message: Message
    finish_reason: str | None


@dataclass(frozen=True)
class CompletionResponse:
    choices: list[Choice]
    usage: Usage
    model: str


@dataclass(frozen=True)
class StreamChunk:
    raw: dict[str, Any]
    text_delta: str | None = None
