from enum import StrEnum


class ApprovalCategory(StrEnum):
    """Capability class of a tool, the primary approval signal."""

    READ = "read"
    WRITE = "write"
    OTHER = "other"


class ApprovalMode(StrEnum):
    """How much tool execution needs explicit confirmation."""

    DEFAULT = "default"
    AUTO_EDIT = "autoEdit"
    YOLO = "yolo"


class ToolGroup(StrEnum):
    """Tool groups for resolution."""

    FILES = "files"
    SHELL = "shell"
    TODO = "todo"
    EXTRA = "extra"


# Modes a session may persist as its override; yolo is task or global only.
SESSION_APPROVAL_MODES = frozenset({ApprovalMode.DEFAULT, ApprovalMode.AUTO_EDIT})
