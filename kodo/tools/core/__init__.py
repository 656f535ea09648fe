"""Core tool infrastructure - base classes, registry, context."""

from kodo.tools.core.base import NeedsApproval, Tool, ToolApproval, ToolResult
from kodo.tools.core.context import ToolContext, ToolExecution
from kodo.tools.core.enums import ApprovalCategory, ApprovalMode, ToolGroup
from kodo.tools.core.formatting import format_lines_with_pagination
from kodo.tools.core.registry import ToolRegistry

__all__ = [
    "ApprovalCategory",
    "ApprovalMode",
    "NeedsApproval",
    "Tool",
    "ToolApproval",
    "ToolContext",
    "ToolExecution",
    "ToolGroup",
    "ToolRegistry",
    "ToolResult",
    "format_lines_with_pagination",
]
