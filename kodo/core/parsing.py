from kodo.core.models import ToolUse
from kodo.llm.types import CompletionResponse, ToolCall
from kodo.llm.utils import parse_args, to_openai_content
from kodo.logging import get_logger
from kodo.session.models import Message

_logger = get_logger(__name__)


def tool_calls_to_dicts(tool_calls: list[ToolCall]) -> list[dict]:
    return [
        {
            "id": tc.id,
            "type": "function",
            "function": {"name": tc.function.name, "arguments": tc.function.arguments},
        }
        for tc in tool_calls
    ]


def to_tool_use(tool_call: ToolCall) -> ToolUse:
    params = parse_args(tool_call.function.arguments)
    if tool_call.function.arguments and not params:
        _logger.warning("Malformed tool arguments: %.200s", tool_call.function.arguments)
    return ToolUse(name=tool_call.function.name, params=params, call_id=tool_call.id)


def to_llm_message(message: Message) -> dict:
    """Convert a stored message into an OpenAI chat message."""
    llm_message: dict = {"role": message.role, "content": to_openai_content(message.content)}
    if message.tool_calls:
        llm_message["tool_calls"] = message.tool_calls
    if message.tool_call_id:
        llm_message["tool_call_id"] = message.tool_call_id
    return llm_message


def response_to_dict(response: CompletionResponse) -> dict:
    message = response.choices[0].message
    return {
        "model": response.model,
        "content": message.content,
        "toolCalls": tool_calls_to_dicts(message.tool_calls or []),
        "reasoning": message.reasoning_content,
        "finishReason": response.choices[0].finish_reason,
        "usage": response.usage.to_dict(),
    }
