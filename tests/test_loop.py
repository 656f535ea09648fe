from pathlib import Path
from typing import Any

import openai
import pytest

from kodo.core.loop import LoopEngine
from kodo.core.models import EngineCallbacks, StreamResult, ToolUse
from kodo.session.models import Message
from kodo.tools.core.base import Tool, ToolApproval, ToolResult
from kodo.tools.core.context import ToolContext, ToolExecution
from kodo.tools.core.enums import ApprovalCategory
from kodo.tools.core.registry import ToolRegistry
from tests.conftest import FakeClient, fake_model, make_message, text_response, tool_response


class EchoTool(Tool):
    name = "echo"
    description = "Echo the text back"
    approval = ToolApproval(category=ApprovalCategory.READ)

    def __init__(self):
        self.calls: list[str] = []

    async def execute(self, execution: ToolExecution, text: str = "", **kwargs: Any) -> ToolResult:
        self.calls.append(text)
        return ToolResult(content=f"echo: {text}", preview="echoed")


class BrokenTool(Tool):
    name = "broken"
    description = "Always fails"

    async def execute(self, execution: ToolExecution, **kwargs: Any) -> ToolResult:
        raise RuntimeError("disk on fire")


def recording_callbacks(events: list[tuple], approve: bool = True) -> EngineCallbacks:
    async def on_message(message: Message):
        events.append(("message", message.role))

    async def on_text_delta(text: str):
        events.append(("text", text))

    async def on_chunk(chunk, request_id: str):
        events.append(("chunk", request_id))

    async def on_stream_result(result: StreamResult):
        events.append(("stream_result", result.error))

    async def on_tool_use(tool_use: ToolUse) -> ToolUse:
        events.append(("tool_use", tool_use.name))
        return tool_use

    async def on_tool_result(tool_use: ToolUse, result: ToolResult) -> ToolResult:
        events.append(("tool_result", result.content))
        return result

    async def on_tool_approve(tool_use: ToolUse) -> bool:
        events.append(("approve", tool_use.name))
        return approve

    return EngineCallbacks(
        on_message=on_message,
        on_text_delta=on_text_delta,
        on_chunk=on_chunk,
        on_stream_result=on_stream_result,
        on_tool_use=on_tool_use,
        on_tool_result=on_tool_result,
        on_tool_approve=on_tool_approve,
    )


def _tool_context(tmp_path: Path) -> ToolContext:
    return ToolContext(session_id="s1", cwd=tmp_path, scratch_dir=tmp_path / "scratch")


async def _run(engine: LoopEngine, client: FakeClient, tools: list[Tool], events: list, tmp_path: Path, **kwargs):
    return await engine.run(
        input=[make_message("user", "say hi")],
        model=fake_model(client),
        tools=ToolRegistry(tools),
        system_prompt="You are a test.",
        tool_context=_tool_context(tmp_path),
        callbacks=recording_callbacks(events, kwargs.pop("approve", True)),
        **kwargs,
    )


class TestLoopEngine:
    @pytest.mark.asyncio
    async def test_event_order(self, tmp_path: Path):
        echo = EchoTool()
        client = FakeClient([tool_response("echo", '{"text": "hi"}'), text_response("Done.")])
        events: list[tuple] = []

        result = await _run(LoopEngine(), client, [echo], events, tmp_path)

        kinds = [e[0] for e in events]
        assert kinds == [
            "chunk",
            "stream_result",
            "message",
            "tool_use",
            "approve",
            "tool_result",
            "message",
            "chunk",
            "text",
            "stream_result",
            "message",
        ]
        assert echo.calls == ["hi"]
        assert result.success
        assert result.text == "Done."

    @pytest.mark.asyncio
    async def test_history_is_linked(self, tmp_path: Path):
        client = FakeClient([tool_response("echo", '{"text": "hi"}'), text_response("Done.")])
        result = await _run(LoopEngine(), client, [EchoTool()], [], tmp_path)

        history = result.history
        assert [m.role for m in history] == ["user", "assistant", "tool", "assistant"]
        for parent, child in zip(history, history[1:]):
            assert child.parent_uuid == parent.uuid
        assert history[1].tool_calls[0]["function"]["name"] == "echo"
        assert history[2].tool_call_id == "call_1"
        assert history[2].content == "echo: hi"
        assert result.usage.prompt_tokens == 35
        assert result.usage.completion_tokens == 8

    @pytest.mark.asyncio
    async def test_request_shape(self, tmp_path: Path):
        client = FakeClient([tool_response("echo", "{}"), text_response("Done.")])
        await _run(LoopEngine(), client, [EchoTool()], [], tmp_path, thinking={"reasoning_effort": "low"})

        first, second = client.calls
        assert first["messages"][0] == {"role": "system", "content": "You are a test."}
        assert first["messages"][1] == {"role": "user", "content": "say hi"}
        assert first["tools"][0]["function"]["name"] == "echo"
        assert first["tool_choice"] == "auto"
        assert first["reasoning_effort"] == "low"
        assert second["messages"][2]["tool_calls"][0]["id"] == "call_1"
        assert second["messages"][3] == {"role": "tool", "content": "echo: ", "tool_call_id": "call_1"}

    @pytest.mark.asyncio
    async def test_rejected_tool_is_not_run(self, tmp_path: Path):
        echo = EchoTool()
        client = FakeClient([tool_response("echo", '{"text": "hi"}'), text_response("Ok, skipping.")])

        result = await _run(LoopEngine(), client, [echo], [], tmp_path, approve=False)

        assert echo.calls == []
        assert result.history[2].content == "User rejected this action"
        assert result.success

    @pytest.mark.asyncio
    async def test_tool_exception_becomes_error_result(self, tmp_path: Path):
        client = FakeClient([tool_response("broken", "{}"), text_response("It failed.")])
        result = await _run(LoopEngine(), client, [BrokenTool()], [], tmp_path)
        assert "RuntimeError: disk on fire" in result.history[2].content

    @pytest.mark.asyncio
    async def test_provider_error(self, tmp_path: Path):
        client = FakeClient([openai.OpenAIError("upstream unavailable")])
        events: list[tuple] = []

        result = await _run(LoopEngine(), client, [], events, tmp_path)

        assert not result.success
        assert result.error.message == "upstream unavailable"
        assert events == [("stream_result", "upstream unavailable")]

    @pytest.mark.asyncio
    async def test_cancelled_before_request(self, tmp_path: Path):
        client = FakeClient([text_response("never")])
        result = await _run(LoopEngine(), client, [], [], tmp_path, cancel_check=lambda: True)
        assert result.error.code == "cancelled"
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_max_iterations(self, tmp_path: Path):
        client = FakeClient([tool_response("echo", "{}")])
        result = await _run(LoopEngine(max_iterations=1), client, [EchoTool()], [], tmp_path)
        assert result.error.code == "max_iterations"
