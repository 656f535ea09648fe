import json
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from kodo.constants import TODO_READ, TODO_WRITE
from kodo.tools.core.base import Tool, ToolApproval, ToolResult
from kodo.tools.core.context import ToolExecution
from kodo.tools.core.enums import ApprovalCategory, ToolGroup

_TODO_WRITE_DESCRIPTION = """Replace the task list for the current session.

Use this to plan multi-step work and to show progress. Send the FULL list every time;
items not included are removed. Keep exactly one item in_progress while working,
and mark items completed as soon as they are done."""

_TODO_READ_DESCRIPTION = """Read the current task list for this session. Returns an empty list if none exists."""

_STATUS_MARKS = {"pending": "[ ]", "in_progress": "[~]", "completed": "[x]"}


class TodoStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TodoItem(BaseModel):
    id: str = Field(description="Stable identifier for the item")
    content: str = Field(description="What needs to be done")
    status: TodoStatus = Field(default=TodoStatus.PENDING)


class TodoWriteInput(BaseModel):
    todos: list[TodoItem] = Field(description="The complete, updated task list")


def _todo_path(execution: ToolExecution) -> Path:
    return execution.ctx.scratch_dir / "todos.json"


def load_todos(execution: ToolExecution) -> list[TodoItem]:
    path = _todo_path(execution)
    if not path.exists():
        return []
    return [TodoItem(**item) for item in json.loads(path.read_text())]


def format_todos(todos: list[TodoItem]) -> str:
    if not todos:
        return "(no todos)"
    return "\n".join(f"{_STATUS_MARKS[t.status]} {t.id}. {t.content}" for t in todos)


class TodoWriteTool(Tool):
    name = TODO_WRITE
    description = _TODO_WRITE_DESCRIPTION
    input_model = TodoWriteInput
    mutates = True
    group = ToolGroup.TODO
    approval = ToolApproval(category=ApprovalCategory.READ)

    async def execute(self, execution: ToolExecution, todos: list[dict] | None = None, **kwargs: Any) -> ToolResult:
        items = [TodoItem(**t) for t in todos or []]
        in_progress = sum(1 for t in items if t.status == TodoStatus.IN_PROGRESS)
        if in_progress > 1:
            return ToolResult(
                content=f"Only one todo may be in_progress, got {in_progress}",
                preview="Invalid todos",
                is_error=True,
            )

        path = _todo_path(execution)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps([t.model_dump(mode="json") for t in items], indent=2))
        done = sum(1 for t in items if t.status == TodoStatus.COMPLETED)
        return ToolResult(content=format_todos(items), preview=f"{done}/{len(items)} done")


class TodoReadTool(Tool):
    name = TODO_READ
    description = _TODO_READ_DESCRIPTION
    group = ToolGroup.TODO
    approval = ToolApproval(category=ApprovalCategory.READ)

    async def execute(self, execution: ToolExecution, **kwargs: Any) -> ToolResult:
        todos = load_todos(execution)
        return ToolResult(content=format_todos(todos), preview=f"{len(todos)} todos")
