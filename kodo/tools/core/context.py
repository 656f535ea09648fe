from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ToolContext:
    """Shared context for tool execution within one task."""

    session_id: str
    cwd: Path
    scratch_dir: Path


@dataclass(frozen=True)
class ToolExecution:
    """Per-tool execution context. Pairs tool identity with shared context."""

    tool_id: str
    tool_name: str
    ctx: ToolContext

    def resolve_path(self, path: str) -> Path:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.ctx.cwd / candidate
        return candidate.resolve()
