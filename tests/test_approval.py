from typing import Any
from unittest.mock import AsyncMock

import pytest

from kodo.context import Context
from kodo.core.approval import APPROVAL_RULES, CONFIRMATION_REQUIRED, ApprovalRequest, decide, evaluate
from kodo.core.models import ToolUse
from kodo.session.models import ApprovalPolicy
from kodo.tools.bash import BashTool
from kodo.tools.core.base import Tool, ToolApproval, ToolResult
from kodo.tools.core.context import ToolExecution
from kodo.tools.core.enums import ApprovalCategory, ApprovalMode
from kodo.tools.files import ReadFileTool, WriteFileTool


class DeployTool(Tool):
    name = "deploy"
    description = "Deploy the app"
    approval = ToolApproval(category=ApprovalCategory.OTHER)

    async def execute(self, execution: ToolExecution, **kwargs: Any) -> ToolResult:
        return ToolResult(content="deployed", preview="deployed")


async def _dry_run_is_free(tool_name: str, params: dict, mode: ApprovalMode, context) -> bool:
    return not params.get("dry_run", False)


class DryRunDeployTool(DeployTool):
    name = "deploy_checked"
    approval = ToolApproval(category=ApprovalCategory.OTHER, needs_approval=_dry_run_is_free)


def _request(
    context: Context,
    tool: Tool | None,
    params: dict | None = None,
    *,
    name: str | None = None,
    mode: ApprovalMode = ApprovalMode.DEFAULT,
    auto_approve_tools: bool = False,
    policy: ApprovalPolicy | None = None,
    approve_unknown_tools: bool = True,
) -> ApprovalRequest:
    return ApprovalRequest(
        tool_use=ToolUse(name=name or tool.name, params=params or {}, call_id="call_1"),
        tool=tool,
        mode=mode,
        auto_approve_tools=auto_approve_tools,
        policy=policy or ApprovalPolicy(),
        context=context,
        approve_unknown_tools=approve_unknown_tools,
    )


class TestRuleOrder:
    def test_rules_are_in_precedence_order(self):
        assert [r.name for r in APPROVAL_RULES] == [
            "auto_approve_tools",
            "yolo",
            "unknown_tool",
            "read_category",
            "needs_no_approval",
            "auto_edit",
            "session_pre_approved",
        ]

    @pytest.mark.asyncio
    async def test_first_matching_rule_wins(self, context: Context):
        req = _request(context, ReadFileTool(), mode=ApprovalMode.YOLO, policy=ApprovalPolicy(pre_approved_tools=frozenset({"read_file"})))
        decision = await evaluate(req)
        assert decision.approved
        assert decision.rule == "yolo"

    @pytest.mark.asyncio
    async def test_unmatched_requires_confirmation(self, context: Context):
        decision = await evaluate(_request(context, DeployTool()))
        assert not decision.approved
        assert decision.rule == CONFIRMATION_REQUIRED

    @pytest.mark.asyncio
    async def test_routing_is_deterministic(self, context: Context):
        req = _request(context, BashTool(), {"command": "npm install"}, mode=ApprovalMode.AUTO_EDIT)
        first = await evaluate(req)
        second = await evaluate(req)
        assert first == second


class TestAutoApproveTools:
    @pytest.mark.asyncio
    async def test_callback_is_observed_but_cannot_veto(self, context: Context):
        callback = AsyncMock(return_value=False)
        req = _request(context, WriteFileTool(), {"path": "a.txt"}, auto_approve_tools=True)

        assert await decide(req, callback) is True
        callback.assert_awaited_once_with(req.tool_use, ApprovalCategory.WRITE)

    @pytest.mark.asyncio
    async def test_approves_without_callback(self, context: Context):
        req = _request(context, DeployTool(), auto_approve_tools=True)
        assert await decide(req) is True


class TestYolo:
    @pytest.mark.asyncio
    async def test_approves_with_empty_policy_and_no_callback(self, context: Context):
        req = _request(context, BashTool(), {"command": "rm build.log"}, mode=ApprovalMode.YOLO)
        assert await decide(req) is True

    @pytest.mark.asyncio
    async def test_callback_not_consulted(self, context: Context):
        callback = AsyncMock(return_value=False)
        req = _request(context, DeployTool(), mode=ApprovalMode.YOLO)
        assert await decide(req, callback) is True
        callback.assert_not_awaited()


class TestUnknownTool:
    @pytest.mark.asyncio
    async def test_unresolved_tool_is_approved(self, context: Context):
        callback = AsyncMock(return_value=False)
        req = _request(context, None, name="not_exposed")
        assert await decide(req, callback) is True
        callback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fails_closed_when_disabled(self, context: Context):
        req = _request(context, None, name="not_exposed", approve_unknown_tools=False)
        assert await decide(req) is False

    @pytest.mark.asyncio
    async def test_disabled_falls_through_to_callback(self, context: Context):
        callback = AsyncMock(return_value=True)
        req = _request(context, None, name="not_exposed", approve_unknown_tools=False)
        assert await decide(req, callback) is True
        callback.assert_awaited_once_with(req.tool_use, None)


class TestReadCategory:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode", list(ApprovalMode))
    async def test_read_never_asks(self, context: Context, mode: ApprovalMode):
        callback = AsyncMock(return_value=False)
        req = _request(context, ReadFileTool(), {"path": "README.md"}, mode=mode)
        assert await decide(req, callback) is True
        callback.assert_not_awaited()


class TestNeedsApproval:
    @pytest.mark.asyncio
    async def test_safe_bash_command_skips_confirmation(self, context: Context):
        callback = AsyncMock(return_value=False)
        req = _request(context, BashTool(), {"command": "git status"})
        decision = await evaluate(req)
        assert decision.rule == "needs_no_approval"
        assert await decide(req, callback) is True
        callback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unsafe_bash_command_asks(self, context: Context):
        callback = AsyncMock(return_value=False)
        req = _request(context, BashTool(), {"command": "make install"})
        assert await decide(req, callback) is False
        callback.assert_awaited_once_with(req.tool_use, ApprovalCategory.OTHER)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("command", ["env rm -rf x", "find . -delete", "git branch -D main"])
    async def test_destructive_bash_denied_without_callback(self, context: Context, command: str):
        req = _request(context, BashTool(), {"command": command})
        assert (await evaluate(req)).rule == CONFIRMATION_REQUIRED
        assert await decide(req) is False

    @pytest.mark.asyncio
    async def test_async_predicate(self, context: Context):
        free = _request(context, DryRunDeployTool(), {"dry_run": True})
        real = _request(context, DryRunDeployTool(), {"dry_run": False})
        assert (await evaluate(free)).approved
        assert not (await evaluate(real)).approved


class TestAutoEdit:
    @pytest.mark.asyncio
    async def test_mode_approves_write(self, context: Context):
        callback = AsyncMock(return_value=False)
        req = _request(context, WriteFileTool(), {"path": "a.txt"}, mode=ApprovalMode.AUTO_EDIT)
        assert await decide(req, callback) is True
        callback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_session_override_approves_write(self, context: Context):
        policy = ApprovalPolicy(approval_mode_override=ApprovalMode.AUTO_EDIT)
        req = _request(context, WriteFileTool(), {"path": "a.txt"}, policy=policy)
        decision = await evaluate(req)
        assert decision.approved
        assert decision.rule == "auto_edit"

    @pytest.mark.asyncio
    async def test_does_not_cover_other_tools(self, context: Context):
        callback = AsyncMock(return_value=False)
        req = _request(context, BashTool(), {"command": "npm install"}, mode=ApprovalMode.AUTO_EDIT)
        assert await decide(req, callback) is False
        callback.assert_awaited_once()


class TestSessionPreApproved:
    @pytest.mark.asyncio
    async def test_whitelisted_tool_is_approved(self, context: Context):
        policy = ApprovalPolicy(pre_approved_tools=frozenset({"deploy"}))
        callback = AsyncMock(return_value=False)
        assert await decide(_request(context, DeployTool(), policy=policy), callback) is True
        callback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_other_names_not_covered(self, context: Context):
        policy = ApprovalPolicy(pre_approved_tools=frozenset({"bash"}))
        assert await decide(_request(context, DeployTool(), policy=policy)) is False


class TestFallback:
    @pytest.mark.asyncio
    async def test_denies_without_callback(self, context: Context):
        assert await decide(_request(context, WriteFileTool(), {"path": "a.txt"})) is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("answer", [True, False])
    async def test_callback_decides(self, context: Context, answer: bool):
        callback = AsyncMock(return_value=answer)
        req = _request(context, WriteFileTool(), {"path": "a.txt"})
        assert await decide(req, callback) is answer
        callback.assert_awaited_once_with(req.tool_use, ApprovalCategory.WRITE)
