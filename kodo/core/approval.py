"""Default-deny approval of tool calls.

Rules are evaluated in order and the first one that approves wins. When none
does, the caller's approval callback decides; with no callback the call is denied.
"""

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from kodo.context import Context
from kodo.core.models import OnToolApprove, ToolUse
from kodo.logging import get_logger
from kodo.session.models import ApprovalPolicy
from kodo.tools.core.base import Tool
from kodo.tools.core.enums import ApprovalCategory, ApprovalMode

_logger = get_logger(__name__)

CONFIRMATION_REQUIRED = "confirmation_required"


@dataclass(frozen=True)
class ApprovalRequest:
    tool_use: ToolUse
    tool: Tool | None
    mode: ApprovalMode
    auto_approve_tools: bool
    policy: ApprovalPolicy
    context: Context
    approve_unknown_tools: bool = True

    @property
    def category(self) -> ApprovalCategory | None:
        return self.tool.approval.category if self.tool else None


@dataclass(frozen=True)
class ApprovalDecision:
    approved: bool
    rule: str


async def _auto_approve_tools(req: ApprovalRequest) -> bool:
    return req.auto_approve_tools


async def _yolo(req: ApprovalRequest) -> bool:
    return req.mode == ApprovalMode.YOLO


async def _unknown_tool(req: ApprovalRequest) -> bool:
    return req.tool is None and req.approve_unknown_tools


async def _read_category(req: ApprovalRequest) -> bool:
    return req.category == ApprovalCategory.READ


async def _needs_no_approval(req: ApprovalRequest) -> bool:
    if req.tool is None or req.tool.approval.needs_approval is None:
        return False
    result = req.tool.approval.needs_approval(req.tool_use.name, req.tool_use.params, req.mode, req.context)
    if inspect.isawaitable(result):
        result = await result
    return not result


async def _auto_edit(req: ApprovalRequest) -> bool:
    if req.category != ApprovalCategory.WRITE:
        return False
    return ApprovalMode.AUTO_EDIT in (req.policy.approval_mode_override, req.mode)


async def _session_pre_approved(req: ApprovalRequest) -> bool:
    return req.tool_use.name in req.policy.pre_approved_tools


@dataclass(frozen=True)
class ApprovalRule:
    name: str
    approves: Callable[[ApprovalRequest], Awaitable[bool]]


AUTO_APPROVE_TOOLS = "auto_approve_tools"

APPROVAL_RULES: tuple[ApprovalRule, ...] = (
    ApprovalRule(AUTO_APPROVE_TOOLS, _auto_approve_tools),
    ApprovalRule("yolo", _yolo),
    ApprovalRule("unknown_tool", _unknown_tool),
    ApprovalRule("read_category", _read_category),
    ApprovalRule("needs_no_approval", _needs_no_approval),
    ApprovalRule("auto_edit", _auto_edit),
    ApprovalRule("session_pre_approved", _session_pre_approved),
)


async def evaluate(req: ApprovalRequest, rules: tuple[ApprovalRule, ...] = APPROVAL_RULES) -> ApprovalDecision:
    """Route a tool call without consulting the user."""
    for rule in rules:
        if await rule.approves(req):
            return ApprovalDecision(approved=True, rule=rule.name)
    return ApprovalDecision(approved=False, rule=CONFIRMATION_REQUIRED)


async def decide(req: ApprovalRequest, callback: OnToolApprove | None = None) -> bool:
    decision = await evaluate(req)
    name = req.tool_use.name

    if decision.approved:
        if decision.rule == "unknown_tool":
            _logger.warning("Approving %s: not in the resolved tool set", name)
        else:
            _logger.debug("Approved %s by rule %s", name, decision.rule)
        if decision.rule == AUTO_APPROVE_TOOLS and callback is not None:
            # Observability only; plan-mode approval cannot be vetoed
            await callback(req.tool_use, req.category)
        return True

    if callback is None:
        _logger.debug("Denied %s: confirmation required and no approval callback", name)
        return False

    approved = bool(await callback(req.tool_use, req.category))
    _logger.debug("User %s %s", "approved" if approved else "denied", name)
    return approved
