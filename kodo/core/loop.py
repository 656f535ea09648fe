import openai

from kodo.constants import AGENT_MAX_ITERATIONS
from kodo.core.models import (
    CancelCheck,
    EngineCallbacks,
    EngineFailure,
    EngineResult,
    EngineSuccess,
    StreamResult,
    TaskError,
    ToolUse,
)
from kodo.core.parsing import response_to_dict, to_llm_message, to_tool_use, tool_calls_to_dicts
from kodo.llm.models import ModelInfo
from kodo.llm.types import CompletionResponse, StreamChunk
from kodo.logging import get_logger
from kodo.session.models import Message
from kodo.tools.core.base import ToolResult
from kodo.tools.core.context import ToolContext, ToolExecution
from kodo.tools.core.registry import ToolRegistry
from kodo.usage import Usage
from kodo.utils import iso_now, new_uuid

_logger = get_logger(__name__)


def _cancelled() -> EngineFailure:
    return EngineFailure(error=TaskError(message="Cancelled.", code="cancelled"))


class LoopEngine:
    """Default execution engine: request, run approved tools, repeat until the model stops."""

    def __init__(self, max_iterations: int | None = AGENT_MAX_ITERATIONS):
        self.max_iterations = max_iterations

    async def _execute_tool(self, tools: ToolRegistry, tool_use: ToolUse, ctx: ToolContext) -> ToolResult:
        execution = ToolExecution(tool_use.call_id, tool_use.name, ctx)
        try:
            return await tools.execute(tool_use.name, execution, tool_use.params)
        except Exception as e:
            _logger.warning("Tool %s failed: %s", tool_use.name, e)
            return ToolResult(
                content=f"Error: {type(e).__name__}: {e}",
                preview=f"Failed: {type(e).__name__}",
                is_error=True,
            )

    async def _request(
        self,
        model: ModelInfo,
        request: dict,
        request_id: str,
        callbacks: EngineCallbacks,
    ) -> CompletionResponse | None:
        response = None
        async for item in model.client.stream(**request):
            match item:
                case StreamChunk(raw=raw, text_delta=text):
                    await callbacks.on_chunk(raw, request_id)
                    if text:
                        await callbacks.on_text_delta(text)
                case CompletionResponse():
                    response = item
        return response

    async def run(
        self,
        *,
        input: list[Message],
        model: ModelInfo,
        tools: ToolRegistry,
        system_prompt: str,
        tool_context: ToolContext,
        callbacks: EngineCallbacks,
        cancel_check: CancelCheck | None = None,
        thinking: dict | None = None,
    ) -> EngineResult:
        def is_cancelled() -> bool:
            return cancel_check is not None and cancel_check()

        history = list(input)
        usage = Usage()
        schemas = tools.get_schemas()

        iteration = 0
        while self.max_iterations is None or iteration < self.max_iterations:
            if is_cancelled():
                return _cancelled()

            request_id = new_uuid()
            prompt = [{"role": "system", "content": system_prompt}, *(to_llm_message(m) for m in history)]
            request = {
                "messages": prompt,
                "model": model.id,
                "tools": schemas,
                "tool_choice": "auto",
                "max_tokens": model.meta.max_output_tokens,
                **(thinking or {}),
            }
            logged_request = {k: v for k, v in request.items() if k != "messages"}

            error: openai.OpenAIError | None = None
            try:
                response = await self._request(model, request, request_id, callbacks)
            except openai.OpenAIError as e:
                _logger.exception("LLM call failed (model=%s)", model.id)
                error = e
                response = None

            if response is None:
                reason = str(error) if error else "Stream ended without a response"
                code = type(error).__name__ if error else "empty_response"
                await callbacks.on_stream_result(
                    StreamResult(
                        request_id=request_id,
                        prompt=prompt,
                        model=model.id,
                        tools=tools.names,
                        request=logged_request,
                        error=reason,
                    )
                )
                return EngineFailure(error=TaskError(message=reason, code=code))

            usage += response.usage
            await callbacks.on_stream_result(
                StreamResult(
                    request_id=request_id,
                    prompt=prompt,
                    model=model.id,
                    tools=tools.names,
                    request=logged_request,
                    response=response_to_dict(response),
                )
            )

            message = response.choices[0].message
            assistant = Message(
                uuid=new_uuid(),
                parent_uuid=history[-1].uuid if history else None,
                role="assistant",
                content=message.content or "",
                timestamp=iso_now(),
                tool_calls=tool_calls_to_dicts(message.tool_calls) if message.tool_calls else None,
                model=model.id,
                usage=response.usage.to_dict(),
            )
            history.append(assistant)
            await callbacks.on_message(assistant)

            if not message.tool_calls:
                return EngineSuccess(text=(message.content or "").strip(), history=history, usage=usage)

            for tool_call in message.tool_calls:
                if is_cancelled():
                    return _cancelled()

                tool_use = await callbacks.on_tool_use(to_tool_use(tool_call))
                if await callbacks.on_tool_approve(tool_use):
                    result = await self._execute_tool(tools, tool_use, tool_context)
                else:
                    result = ToolResult(content="User rejected this action", preview="Rejected", is_error=True)
                result = await callbacks.on_tool_result(tool_use, result)

                tool_message = Message(
                    uuid=new_uuid(),
                    parent_uuid=history[-1].uuid,
                    role="tool",
                    content=result.content,
                    timestamp=iso_now(),
                    tool_call_id=tool_call.id,
                )
                history.append(tool_message)
                await callbacks.on_message(tool_message)

            iteration += 1

        return EngineFailure(
            error=TaskError(message=f"Stopped: reached max iterations ({self.max_iterations}).", code="max_iterations")
        )
