from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from kodo.errors import UnknownMessageError
from kodo.tools.core.enums import ApprovalMode

type UserContent = str | list[dict[str, Any]]


@dataclass(frozen=True)
class Message:
    """One immutable node of the conversation tree."""

    uuid: str
    parent_uuid: str | None
    role: str
    content: UserContent
    timestamp: str
    type: str = "message"
    tool_calls: list[dict] | None = None
    tool_call_id: str | None = None
    model: str | None = None
    usage: dict | None = None

    @property
    def text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        return "\n\n".join(p["text"] for p in self.content if isinstance(p, dict) and p.get("type") == "text")

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "uuid": self.uuid,
            "parentUuid": self.parent_uuid,
            "role": self.role,
            "content": self.content,
            "type": self.type,
            "timestamp": self.timestamp,
        }
        optional = {
            "toolCalls": self.tool_calls,
            "toolCallId": self.tool_call_id,
            "model": self.model,
            "usage": self.usage,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        return cls(
            uuid=data["uuid"],
            parent_uuid=data.get("parentUuid"),
            role=data["role"],
            content=data["content"],
            type=data.get("type", "message"),
            timestamp=data["timestamp"],
            tool_calls=data.get("toolCalls"),
            tool_call_id=data.get("toolCallId"),
            model=data.get("model"),
            usage=data.get("usage"),
        )


class ConversationHistory:
    """The committed root-to-tip path plus every node known to the session.

    Nodes are never edited; branching builds a new linear view by walking
    ``parent_uuid`` back-references from the requested node.
    """

    def __init__(self, messages: Iterable[Message] = (), nodes: Iterable[Message] = ()):
        self._messages: tuple[Message, ...] = tuple(messages)
        self._nodes: dict[str, Message] = {m.uuid: m for m in nodes}
        for m in self._messages:
            self._nodes.setdefault(m.uuid, m)

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def last(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    def get(self, uuid: str) -> Message | None:
        return self._nodes.get(uuid)

    def __contains__(self, uuid: str) -> bool:
        return uuid in self._nodes

    def __len__(self) -> int:
        return len(self._messages)

    def messages_up_to(self, uuid: str) -> list[Message]:
        """Return the root-to-``uuid`` path, inclusive."""
        path: list[Message] = []
        seen: set[str] = set()
        current: str | None = uuid
        while current is not None:
            node = self._nodes.get(current)
            if node is None or current in seen:
                raise UnknownMessageError(current)
            seen.add(current)
            path.append(node)
            current = node.parent_uuid
        path.reverse()
        return path

    def replaced(self, messages: Iterable[Message]) -> "ConversationHistory":
        """New history whose committed path is ``messages``; known nodes are kept."""
        return ConversationHistory(messages, nodes=self._nodes.values())


@dataclass(frozen=True)
class ApprovalPolicy:
    """Per-session approval settings, mutable by the user mid-session."""

    approval_mode_override: ApprovalMode | None = None
    pre_approved_tools: frozenset[str] = frozenset()

    def to_dict(self) -> dict:
        return {
            "approvalMode": self.approval_mode_override.value if self.approval_mode_override else None,
            "approvalTools": sorted(self.pre_approved_tools),
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "ApprovalPolicy":
        if not data:
            return cls()
        mode = data.get("approvalMode")
        return cls(
            approval_mode_override=ApprovalMode(mode) if mode else None,
            pre_approved_tools=frozenset(data.get("approvalTools") or ()),
        )


@dataclass
class SessionState:
    session_id: str
    started_at: datetime
    last_activity: datetime = field(default_factory=datetime.now)
    name: str | None = None


@dataclass
class Session:
    state: SessionState
    history: ConversationHistory = field(default_factory=ConversationHistory)

    @property
    def id(self) -> str:
        return self.state.session_id
