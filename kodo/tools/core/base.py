from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel

from kodo.tools.core.context import ToolExecution
from kodo.tools.core.enums import ApprovalCategory, ApprovalMode, ToolGroup

if TYPE_CHECKING:
    from kodo.context import Context

# (tool_name, params, mode, context) -> whether a confirmation is required
type NeedsApproval = Callable[[str, dict, ApprovalMode, "Context"], bool | Awaitable[bool]]


def _flatten_schema(schema: dict) -> dict:
    """Replace local `#/$defs/...` references so providers see a single self-contained object."""
    definitions = schema.get("$defs") or {}

    def expand(node: Any) -> Any:
        match node:
            case {"$ref": str(ref)} if ref.rpartition("/")[2] in definitions:
                return expand(definitions[ref.rpartition("/")[2]])
            case dict():
                return {key: expand(value) for key, value in node.items() if key != "$defs"}
            case list():
                return [expand(value) for value in node]
        return node

    return expand(schema) if definitions else schema


@dataclass(frozen=True)
class ToolResult:
    content: str
    preview: str
    is_error: bool = False


@dataclass(frozen=True)
class ToolApproval:
    category: ApprovalCategory = ApprovalCategory.OTHER
    needs_approval: NeedsApproval | None = None


class Tool(ABC):
    name: str
    description: str
    mutates: bool = False
    group: ToolGroup = ToolGroup.EXTRA
    approval: ToolApproval = ToolApproval()
    input_model: ClassVar[type[BaseModel] | None] = None

    @property
    def is_write_capable(self) -> bool:
        return self.mutates or self.approval.category == ApprovalCategory.WRITE

    @abstractmethod
    async def execute(self, execution: ToolExecution, **kwargs: Any) -> ToolResult: ...

    def to_dict(self) -> dict:
        schema: dict = {"name": self.name, "description": self.description}
        if self.input_model is not None:
            json_schema = _flatten_schema(self.input_model.model_json_schema())
            schema["parameters"] = {
                "type": "object",
                "properties": json_schema.get("properties", {}),
                "required": json_schema.get("required", []),
            }
        return {
            "type": "function",
            "function": schema,
        }
