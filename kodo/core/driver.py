from dataclasses import dataclass
from typing import Any

from kodo.context import Context
from kodo.core.approval import ApprovalRequest, decide
from kodo.core.models import (
    CancelCheck,
    EngineCallbacks,
    EngineSuccess,
    ExecutionEngine,
    StreamResult,
    TaskCallbacks,
    TaskData,
    TaskFailure,
    TaskMetadata,
    TaskResult,
    TaskSuccess,
    ToolUse,
)
from kodo.llm.models import ModelInfo
from kodo.logging import get_logger
from kodo.session.log import MessageLog, RequestLog
from kodo.session.models import Message, Session
from kodo.session.service import SessionService
from kodo.tools.core.base import ToolResult
from kodo.tools.core.context import ToolContext
from kodo.tools.core.registry import ToolRegistry
from kodo.utils import ms_now

_logger = get_logger(__name__)


@dataclass(frozen=True)
class TurnInput:
    session: Session
    input: list[Message]
    user_message: Message | None
    model: ModelInfo
    tools: ToolRegistry
    system_prompt: str
    auto_approve_tools: bool
    callbacks: TaskCallbacks
    cancel_check: CancelCheck | None = None
    thinking: dict | None = None


@dataclass
class _TurnStats:
    turns: int = 0
    tool_calls: int = 0


class TurnDriver:
    """Runs one model turn, persisting every event before the caller sees it.

    Handlers are awaited one at a time in the order the engine emits them, so
    durable writes for an event always finish before the matching callback runs.
    """

    def __init__(
        self,
        context: Context,
        session_service: SessionService,
        engine: ExecutionEngine,
        message_log: MessageLog,
        request_log: RequestLog,
    ):
        self.context = context
        self.session_service = session_service
        self.engine = engine
        self.message_log = message_log
        self.request_log = request_log

    async def _record_message(self, message: Message, callbacks: TaskCallbacks) -> None:
        self.message_log.add_message(message)
        if callbacks.on_message:
            await callbacks.on_message(message)

    async def _approve(self, turn: TurnInput, tool_use: ToolUse) -> bool:
        # Read fresh on every call so mid-turn policy edits apply immediately
        policy = await self.session_service.approval_policy(turn.session.id)
        request = ApprovalRequest(
            tool_use=tool_use,
            tool=turn.tools.get(tool_use.name),
            mode=self.context.config.approval_mode,
            auto_approve_tools=turn.auto_approve_tools,
            policy=policy,
            context=self.context,
            approve_unknown_tools=self.context.config.approve_unknown_tools,
        )
        return await decide(request, turn.callbacks.on_tool_approve)

    def _engine_callbacks(self, turn: TurnInput, stats: _TurnStats) -> EngineCallbacks:
        callbacks = turn.callbacks

        async def on_message(message: Message) -> None:
            await self._record_message(message, callbacks)

        async def on_text_delta(text: str) -> None:
            if callbacks.on_text_delta:
                await callbacks.on_text_delta(text)

        async def on_stream_result(result: StreamResult) -> None:
            stats.turns += 1
            self.request_log.log_metadata(
                result.request_id,
                prompt=result.prompt,
                model=result.model,
                tools=result.tools,
                request=result.request,
                response=result.response,
                error=result.error,
            )
            if callbacks.on_stream_result:
                await callbacks.on_stream_result(result)

        async def on_chunk(chunk: Any, request_id: str) -> None:
            self.request_log.log_chunk(request_id, chunk)
            if callbacks.on_chunk:
                await callbacks.on_chunk(chunk, request_id)

        async def on_tool_use(tool_use: ToolUse) -> ToolUse:
            stats.tool_calls += 1
            return tool_use

        async def on_tool_result(_tool_use: ToolUse, result: ToolResult) -> ToolResult:
            return result

        async def on_tool_approve(tool_use: ToolUse) -> bool:
            return await self._approve(turn, tool_use)

        return EngineCallbacks(
            on_message=on_message,
            on_text_delta=on_text_delta,
            on_chunk=on_chunk,
            on_stream_result=on_stream_result,
            on_tool_use=on_tool_use,
            on_tool_result=on_tool_result,
            on_tool_approve=on_tool_approve,
        )

    async def run(self, turn: TurnInput) -> TaskResult:
        start_ms = ms_now()
        stats = _TurnStats()

        if turn.user_message is not None:
            await self._record_message(turn.user_message, turn.callbacks)

        result = await self.engine.run(
            input=turn.input,
            model=turn.model,
            tools=turn.tools,
            system_prompt=turn.system_prompt,
            tool_context=ToolContext(
                session_id=turn.session.id,
                cwd=self.context.cwd,
                scratch_dir=self.context.paths.scratch_dir(turn.session.id),
            ),
            callbacks=self._engine_callbacks(turn, stats),
            cancel_check=turn.cancel_check,
            thinking=turn.thinking,
        )

        if not isinstance(result, EngineSuccess):
            _logger.warning("Turn failed for session %s: %s", turn.session.id, result.error.message)
            return TaskFailure(error=result.error)

        await self.session_service.commit_history(turn.session, result.history)
        return TaskSuccess(
            data=TaskData(text=result.text, history=result.history, usage=result.usage),
            metadata=TaskMetadata(
                turns_count=stats.turns,
                tool_calls_count=stats.tool_calls,
                duration_ms=ms_now() - start_ms,
            ),
        )
