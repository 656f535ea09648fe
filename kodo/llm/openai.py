from collections.abc import AsyncGenerator
from dataclasses import dataclass, field

import openai

from kodo.llm.base import CompletionClient
from kodo.llm.retry import with_retry
from kodo.llm.types import (
    Choice,
    CompletionResponse,
    FunctionCall,
    Message,
    StreamChunk,
    ToolCall,
)
from kodo.llm.utils import blocks_to_text
from kodo.usage import Usage


@dataclass
class _PartialToolCall:
    id: str = ""
    name: str = ""
    arguments: str = ""


@dataclass
class _StreamState:
    content: list[str] = field(default_factory=list)
    reasoning: list[str] = field(default_factory=list)
    tool_calls: dict[int, _PartialToolCall] = field(default_factory=dict)
    finish_reason: str | None = None
    usage: Usage = field(default_factory=Usage)

    def to_response(self, model: str) -> CompletionResponse:
        tool_calls = [
            ToolCall(id=tc.id, type="function", function=FunctionCall(name=tc.name, arguments=tc.arguments))
            for _, tc in sorted(self.tool_calls.items())
        ]
        message = Message(
            role="assistant",
            content="".join(self.content) or None,
            tool_calls=tool_calls or None,
            reasoning_content="".join(self.reasoning) or None,
        )
        return CompletionResponse(
            choices=[Choice(message=message, finish_reason=self.finish_reason)],
            usage=self.usage,
            model=model,
        )


class OpenAIClient(CompletionClient):
    def __init__(self, base_url: str | None = None, api_key: str | None = None):
        self._client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url)

    async def stream(
        self,
        messages: list[dict],
        model: str,
        tools: list[dict] | None = None,
        tool_choice: str | None = None,
        max_tokens: int | None = None,
        **kwargs,
    ) -> AsyncGenerator[StreamChunk | CompletionResponse]:
        request: dict = {
            "model": model,
            "messages": self._preprocess_messages(messages),
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        optional = {
            "tools": tools or None,
            "tool_choice": tool_choice if tools else None,
            "max_tokens": max_tokens,
            "reasoning_effort": kwargs.get("reasoning_effort"),
            "extra_body": kwargs.get("extra_body"),
        }
        request.update({k: v for k, v in optional.items() if v is not None})

        response = await with_retry(self._client.chat.completions.create, **request)
        state = _StreamState()
        async for chunk in response:
            text = self._apply_chunk(state, chunk)
            yield StreamChunk(raw=chunk.model_dump(exclude_none=True), text_delta=text)

        yield state.to_response(model)

    async def close(self) -> None:
        await self._client.close()

    def _preprocess_messages(self, messages: list[dict]) -> list[dict]:
        return [
            {**msg, "content": blocks_to_text(msg["content"])}
            if msg.get("role") == "system" and isinstance(msg.get("content"), list)
            else msg
            for msg in messages
        ]

    def _apply_chunk(self, state: _StreamState, chunk) -> str | None:
        if chunk.usage:
            details = chunk.usage.prompt_tokens_details
            cache_read = (details.cached_tokens or 0) if details else 0
            state.usage = Usage(
                prompt_tokens=chunk.usage.prompt_tokens - cache_read,
                completion_tokens=chunk.usage.completion_tokens,
                cache_read_tokens=cache_read,
            )

        if not chunk.choices:
            return None

        choice = chunk.choices[0]
        if choice.finish_reason:
            state.finish_reason = choice.finish_reason

        delta = choice.delta
        if reasoning := getattr(delta, "reasoning_content", None):
            state.reasoning.append(reasoning)

        for tc in delta.tool_calls or []:
            partial = state.tool_calls.setdefault(tc.index, _PartialToolCall())
            if tc.id:
                partial.id = tc.id
            if tc.function:
                if tc.function.name:
                    partial.name += tc.function.name
                if tc.function.arguments:
                    partial.arguments += tc.function.arguments

        if delta.content:
            state.content.append(delta.content)
            return delta.content
        return None
