import difflib
import re
from typing import Any

from pydantic import BaseModel, Field

from kodo.constants import DEFAULT_READ_LINES, EDIT_FILE, GREP, GREP_MAX_MATCHES, LS, LS_MAX_ENTRIES, READ_FILE, WRITE_FILE
from kodo.tools.core.base import Tool, ToolApproval, ToolResult
from kodo.tools.core.context import ToolExecution
from kodo.tools.core.enums import ApprovalCategory, ToolGroup
from kodo.tools.core.formatting import format_lines_with_pagination

READ_FILE_DESCRIPTION = (
    "Read content from a file. Use for code, configs, logs, etc. "
    "For large files, use offset and limit parameters to read in chunks."
)

LS_DESCRIPTION = "List the entries of a directory. Directories are shown with a trailing slash."

GREP_DESCRIPTION = (
    "Search file contents with a regular expression. "
    "Returns matching lines as path:line:text. Use glob to restrict which files are searched."
)

WRITE_FILE_DESCRIPTION = "Create a file or overwrite it entirely with the given content. Requires approval."

EDIT_FILE_DESCRIPTION = (
    "Replace an exact snippet of a file with new text. old_string must match exactly once "
    "unless replace_all is set. Requires approval."
)

_READ = ToolApproval(category=ApprovalCategory.READ)
_WRITE = ToolApproval(category=ApprovalCategory.WRITE)

_SKIP_DIRS = frozenset({".git", "node_modules", "__pycache__", ".venv", "venv"})


def _diff_preview(old: str, new: str, path: str) -> str:
    diff = difflib.unified_diff(
        old.splitlines(keepends=True),
        new.splitlines(keepends=True),
        fromfile=f"a/{path}",
        tofile=f"b/{path}",
        n=1,
    )
    return "".join(diff)


class ReadFileInput(BaseModel):
    path: str = Field(description="Path to the file (relative to the working directory or absolute)")
    offset: int = Field(default=1, description="Line number to start from (1-based, default: 1)")
    limit: int = Field(default=DEFAULT_READ_LINES, description=f"Maximum lines to read (default: {DEFAULT_READ_LINES})")


class ReadFileTool(Tool):
    name = READ_FILE
    description = READ_FILE_DESCRIPTION
    input_model = ReadFileInput
    group = ToolGroup.FILES
    approval = _READ

    async def execute(
        self, execution: ToolExecution, path: str, offset: int = 1, limit: int = DEFAULT_READ_LINES, **kwargs: Any
    ) -> ToolResult:
        full_path = execution.resolve_path(path)

        if not full_path.exists():
            return ToolResult(
                content=f"File not found: {path}. Check the path or use ls() to list the directory.",
                preview="Not found",
            )
        if not full_path.is_file():
            return ToolResult(
                content=f"Path is a directory, not a file: {path}. Use ls({path}) to list contents.",
                preview="Not a file",
            )

        try:
            content = full_path.read_text(encoding="utf-8", errors="replace")
        except PermissionError:
            return ToolResult(content=f"Permission denied: {path}.", preview="Denied", is_error=True)

        formatted = format_lines_with_pagination(content, offset, limit)
        lines = len(content.split("\n"))
        return ToolResult(content=formatted, preview=f"Read {lines} lines")


class LsInput(BaseModel):
    path: str = Field(default=".", description="Directory to list (default: working directory)")


class LsTool(Tool):
    name = LS
    description = LS_DESCRIPTION
    input_model = LsInput
    group = ToolGroup.FILES
    approval = _READ

    async def execute(self, execution: ToolExecution, path: str = ".", **kwargs: Any) -> ToolResult:
        directory = execution.resolve_path(path)
        if not directory.is_dir():
            return ToolResult(content=f"Not a directory: {path}", preview="Not a directory", is_error=True)

        entries = sorted(directory.iterdir(), key=lambda p: (not p.is_dir(), p.name))
        names = [f"{p.name}/" if p.is_dir() else p.name for p in entries[:LS_MAX_ENTRIES]]
        if len(entries) > LS_MAX_ENTRIES:
            names.append(f"... ({len(entries) - LS_MAX_ENTRIES} more)")
        return ToolResult(content="\n".join(names) or "(empty)", preview=f"{len(entries)} entries")


class GrepInput(BaseModel):
    pattern: str = Field(description="Regular expression to search for")
    path: str = Field(default=".", description="File or directory to search (default: working directory)")
    glob: str = Field(default="*", description="Filename glob to restrict the search, e.g. *.py")


class GrepTool(Tool):
    name = GREP
    description = GREP_DESCRIPTION
    input_model = GrepInput
    group = ToolGroup.FILES
    approval = _READ

    async def execute(
        self, execution: ToolExecution, pattern: str, path: str = ".", glob: str = "*", **kwargs: Any
    ) -> ToolResult:
        try:
            regex = re.compile(pattern)
        except re.error as e:
            return ToolResult(content=f"Invalid pattern: {e}", preview="Invalid pattern", is_error=True)

        root = execution.resolve_path(path)
        files = [root] if root.is_file() else sorted(root.rglob(glob))
        matches: list[str] = []
        for file in files:
            if not file.is_file() or _SKIP_DIRS.intersection(file.parts):
                continue
            try:
                text = file.read_text(encoding="utf-8")
            except (UnicodeDecodeError, OSError):
                continue
            for lineno, line in enumerate(text.splitlines(), start=1):
                if regex.search(line):
                    rel = file.relative_to(execution.ctx.cwd) if file.is_relative_to(execution.ctx.cwd) else file
                    matches.append(f"{rel}:{lineno}:{line}")
                    if len(matches) >= GREP_MAX_MATCHES:
                        matches.append("... [truncated]")
                        return ToolResult(content="\n".join(matches), preview=f"{GREP_MAX_MATCHES}+ matches")

        if not matches:
            return ToolResult(content=f"No matches for {pattern!r}", preview="No matches")
        return ToolResult(content="\n".join(matches), preview=f"{len(matches)} matches")


class WriteFileInput(BaseModel):
    path: str = Field(description="Path of the file to write")
    content: str = Field(description="Full file content")


class WriteFileTool(Tool):
    name = WRITE_FILE
    description = WRITE_FILE_DESCRIPTION
    input_model = WriteFileInput
    mutates = True
    group = ToolGroup.FILES
    approval = _WRITE

    async def execute(self, execution: ToolExecution, path: str, content: str, **kwargs: Any) -> ToolResult:
        full_path = execution.resolve_path(path)
        existed = full_path.exists()
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_text(content, encoding="utf-8")
        lines = content.count("\n") + 1
        verb = "Overwrote" if existed else "Created"
        return ToolResult(content=f"{verb} {path} ({lines} lines)", preview=f"{verb} {lines} lines")


class EditFileInput(BaseModel):
    path: str = Field(description="Path of the file to edit")
    old_string: str = Field(description="Exact text to replace")
    new_string: str = Field(description="Replacement text")
    replace_all: bool = Field(default=False, description="Replace every occurrence")


class EditFileTool(Tool):
    name = EDIT_FILE
    description = EDIT_FILE_DESCRIPTION
    input_model = EditFileInput
    mutates = True
    group = ToolGroup.FILES
    approval = _WRITE

    async def execute(
        self,
        execution: ToolExecution,
        path: str,
        old_string: str,
        new_string: str,
        replace_all: bool = False,
        **kwargs: Any,
    ) -> ToolResult:
        full_path = execution.resolve_path(path)
        if not full_path.is_file():
            return ToolResult(content=f"File not found: {path}", preview="Not found", is_error=True)

        original = full_path.read_text(encoding="utf-8")
        count = original.count(old_string)
        if count == 0:
            return ToolResult(content=f"old_string not found in {path}", preview="No match", is_error=True)
        if count > 1 and not replace_all:
            return ToolResult(
                content=f"old_string matches {count} times in {path}; add context or set replace_all",
                preview="Ambiguous",
                is_error=True,
            )

        updated = original.replace(old_string, new_string) if replace_all else original.replace(old_string, new_string, 1)
        full_path.write_text(updated, encoding="utf-8")
        return ToolResult(content=_diff_preview(original, updated, path) or "(no change)", preview=f"Edited {path}")
