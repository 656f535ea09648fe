import asyncio
import shlex
import subprocess
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from kodo.constants import BASH, BASH_OUTPUT_LIMIT, BASH_TIMEOUT
from kodo.tools.core.base import Tool, ToolApproval, ToolResult
from kodo.tools.core.context import ToolExecution
from kodo.tools.core.enums import ApprovalCategory, ApprovalMode, ToolGroup

if TYPE_CHECKING:
    from kodo.context import Context

# Read-only command prefixes. The value limits the arguments that may follow
# the prefix; None accepts any argument not listed in UNSAFE_ARGS.
SAFE_COMMANDS: dict[tuple[str, ...], frozenset[str] | None] = {
    ("ls",): None,
    ("cat",): None,
    ("head",): None,
    ("tail",): None,
    ("wc",): None,
    ("file",): None,
    ("stat",): None,
    ("du",): None,
    ("df",): None,
    ("find",): None,
    ("which",): None,
    ("type",): None,
    ("grep",): None,
    ("rg",): None,
    ("cut",): None,
    ("tr",): None,
    ("diff",): None,
    ("pwd",): None,
    ("whoami",): None,
    ("uname",): None,
    ("printenv",): None,
    ("git", "status"): None,
    ("git", "log"): None,
    ("git", "diff"): None,
    ("git", "show"): None,
    ("git", "branch"): frozenset({"-a", "--all", "-r", "--remotes", "-v", "-vv", "--list", "--show-current"}),
    ("git", "tag"): frozenset({"-l", "--list"}),
    ("git", "remote"): frozenset({"-v", "--verbose"}),
    ("git", "stash", "list"): None,
    ("npm", "list"): None,
    ("npm", "ls"): None,
    ("pip", "list"): None,
    ("pip", "show"): None,
}

# Arguments that make an otherwise read-only command write files or run programs.
UNSAFE_ARGS = frozenset(
    {
        "-delete",
        "-exec",
        "-execdir",
        "-ok",
        "-okdir",
        "-fls",
        "-fprint",
        "-fprint0",
        "-fprintf",
        "--pre",
        "--ext-diff",
    }
)

BLOCKED_PATTERNS = frozenset(
    {
        "rm -rf /",
        "rm -rf ~",
        "rm -rf *",
        "dd if=",
        "mkfs",
        "fdisk",
        ":(){:|:&};:",
        "> /dev/sd",
        "chmod -R 777 /",
    }
)

SHELL_OPERATORS = ("|", ";", "&", ">", "<", "`", "$(", "\n")

BASH_DESCRIPTION = """Execute a bash command in the project's working directory.

PREFER OTHER TOOLS:
- For reading files: use read_file()
- For searching file contents: use grep()
- For listing directories: use ls()
- For changing files: use write_file() or edit_file()

USE bash FOR:
- Builds, tests, linters, type checkers
- git, package managers
- Anything the other tools cannot do

SAFETY: Destructive commands (rm -rf) are blocked. Commands that are not known to be read-only require approval."""


def _safe_prefix(parts: list[str]) -> tuple[frozenset[str] | None, list[str]] | None:
    for size in (3, 2, 1):
        prefix = tuple(parts[:size])
        if len(prefix) == size and prefix in SAFE_COMMANDS:
            return SAFE_COMMANDS[prefix], parts[size:]
    return None


def _is_unsafe_arg(arg: str) -> bool:
    return arg in UNSAFE_ARGS or arg.startswith(("--output", "--pre="))


def is_safe_command(command: str) -> bool:
    if any(op in command for op in SHELL_OPERATORS):
        return False
    try:
        parts = shlex.split(command)
    except ValueError:
        return False
    if not parts:
        return False

    # `<program> --version` with nothing else, and only for a program on PATH
    if len(parts) == 2 and parts[1] == "--version":
        return "/" not in parts[0]

    match = _safe_prefix(parts)
    if match is None:
        return False
    allowed, args = match
    if any(_is_unsafe_arg(arg) for arg in args):
        return False
    return allowed is None or all(arg in allowed for arg in args)


def is_blocked_command(command: str) -> bool:
    cmd_lower = command.lower().strip()
    return any(blocked in cmd_lower for blocked in BLOCKED_PATTERNS)


def bash_needs_approval(tool_name: str, params: dict, mode: ApprovalMode, context: "Context") -> bool:
    command = params.get("command") or ""
    return not is_safe_command(command) and not is_blocked_command(command)


def execute_bash(command: str, working_dir: str | None = None, timeout: int = BASH_TIMEOUT) -> str:
    try:
        proc = subprocess.run(command, shell=True, cwd=working_dir, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired:
        return f"Error: Command timed out after {timeout}s"
    except OSError as e:
        return f"Error: {e}"

    sections = [proc.stdout] if proc.stdout else []
    if proc.stderr:
        sections.append(f"[stderr]\n{proc.stderr}")
    text = "\n".join(sections)
    if proc.returncode:
        text = f"{text}\n[exit code: {proc.returncode}]"

    if len(text) > BASH_OUTPUT_LIMIT:
        return text[:BASH_OUTPUT_LIMIT] + "\n... [truncated]"
    return text or "(no output)"


class BashInput(BaseModel):
    command: str = Field(description="The shell command to execute")
    timeout: int = Field(default=BASH_TIMEOUT, description=f"Timeout in seconds (default: {BASH_TIMEOUT})")


class BashTool(Tool):
    name = BASH
    description = BASH_DESCRIPTION
    input_model = BashInput
    mutates = True
    group = ToolGroup.SHELL
    approval = ToolApproval(category=ApprovalCategory.OTHER, needs_approval=bash_needs_approval)

    async def execute(
        self, execution: ToolExecution, command: str = "", timeout: int = BASH_TIMEOUT, **kwargs: Any
    ) -> ToolResult:
        if not command:
            return ToolResult(content="Error: command is required", preview="Missing command", is_error=True)
        if is_blocked_command(command):
            return ToolResult(content=f"Blocked: {command}", preview="Blocked", is_error=True)

        output = await asyncio.to_thread(execute_bash, command, str(execution.ctx.cwd), timeout)
        lines = output.count("\n") + 1
        return ToolResult(content=output, preview=f"{lines} lines")
