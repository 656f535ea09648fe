from collections.abc import Callable
from typing import TYPE_CHECKING

from kodo.errors import ToolResolutionError
from kodo.logging import get_logger
from kodo.tools.bash import BashTool
from kodo.tools.core.base import Tool
from kodo.tools.core.enums import ToolGroup
from kodo.tools.files import EditFileTool, GrepTool, LsTool, ReadFileTool, WriteFileTool
from kodo.tools.todo import TodoReadTool, TodoWriteTool

if TYPE_CHECKING:
    from kodo.context import Context

_logger = get_logger(__name__)

BUILTIN_TOOLS: list[type[Tool]] = [
    # Read
    ReadFileTool,
    LsTool,
    GrepTool,
    # Write
    WriteFileTool,
    EditFileTool,
    BashTool,
    # Task list
    TodoReadTool,
    TodoWriteTool,
]

type ToolFactory = Callable[["Context", str], list[Tool]]


class ToolResolver:
    """Decides which tools a task can see. Order of the returned list is stable."""

    def __init__(self, builtins: list[type[Tool]] | None = None):
        self._builtins = BUILTIN_TOOLS if builtins is None else builtins
        self._factories: list[ToolFactory] = []

    def add_factory(self, factory: ToolFactory) -> None:
        """Register extra tools built per task, e.g. from an external integration."""
        self._factories.append(factory)

    def resolve(
        self,
        context: "Context",
        session_id: str,
        *,
        include_write: bool,
        include_task_list: bool,
    ) -> list[Tool]:
        try:
            candidates: list[Tool] = [tool_cls() for tool_cls in self._builtins]
            for factory in self._factories:
                candidates.extend(factory(context, session_id))
        except Exception as e:
            raise ToolResolutionError(f"Failed to resolve tools: {e}") from e

        tools: list[Tool] = []
        seen: set[str] = set()
        for tool in candidates:
            if tool.name in seen:
                _logger.warning("Duplicate tool name %s, keeping the first", tool.name)
                continue
            if tool.group == ToolGroup.TODO and not (include_task_list and context.config.todo):
                continue
            if tool.is_write_capable and tool.group != ToolGroup.TODO and not include_write:
                continue
            seen.add(tool.name)
            tools.append(tool)
        return tools
