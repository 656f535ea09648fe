import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path

import pytest
import pytest_asyncio

from kodo.context import Context
from kodo.core.models import EngineCallbacks, EngineResult, EngineSuccess
from kodo.llm.base import CompletionClient
from kodo.llm.models import ModelInfo, ModelMeta
from kodo.llm.types import Choice, CompletionResponse, FunctionCall, Message as LLMMessage, StreamChunk, ToolCall
from kodo.session.models import Message
from kodo.session.service import SessionService
from kodo.session.store import SessionStore
from kodo.usage import Usage
from kodo.utils import iso_now, new_uuid

TEST_MODEL = "test-model"


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch):
    for key in list(os.environ):
        if key.startswith("KODO_") or key in ("OPENAI_API_KEY", "OPENAI_BASE_URL"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("KODO_HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def make_context(tmp_path: Path) -> Callable[..., Context]:
    cwd = tmp_path / "project"
    cwd.mkdir(exist_ok=True)

    def _make(**overrides) -> Context:
        overrides.setdefault("model", TEST_MODEL)
        return Context.create(cwd, product_name="Kodo", version="0.0.0", config_overrides=overrides)

    return _make


@pytest.fixture
def context(make_context) -> Context:
    return make_context()


@pytest_asyncio.fixture
async def store(context: Context) -> AsyncGenerator[SessionStore]:
    store = SessionStore(context.paths.sessions_db_path)
    await store.connect()
    yield store
    await store.close()


@pytest.fixture
def session_service(store: SessionStore) -> SessionService:
    return SessionService(store)


def make_message(role: str, content: str, parent: Message | None = None, **kwargs) -> Message:
    return Message(
        uuid=new_uuid(),
        parent_uuid=parent.uuid if parent else None,
        role=role,
        content=content,
        timestamp=iso_now(),
        **kwargs,
    )


def make_chain(*contents: str) -> list[Message]:
    """Alternating user/assistant messages, each parented on the previous one."""
    chain: list[Message] = []
    for i, content in enumerate(contents):
        chain.append(make_message("user" if i % 2 == 0 else "assistant", content, chain[-1] if chain else None))
    return chain


# --- Fake execution engine ---

type EngineScript = Callable[[list[Message], EngineCallbacks], Awaitable[EngineResult]]


async def reply_script(input: list[Message], callbacks: EngineCallbacks) -> EngineResult:
    reply = make_message("assistant", "ok", input[-1] if input else None)
    await callbacks.on_message(reply)
    return EngineSuccess(text="ok", history=[*input, reply], usage=Usage(prompt_tokens=10, completion_tokens=2))


class FakeEngine:
    """Runs a scripted turn and records what it was given."""

    def __init__(self, script: EngineScript = reply_script):
        self.script = script
        self.calls: list[dict] = []

    async def run(self, *, input, model, tools, system_prompt, tool_context, callbacks, cancel_check=None, thinking=None):
        self.calls.append(
            {
                "input": input,
                "model": model,
                "tools": tools,
                "system_prompt": system_prompt,
                "tool_context": tool_context,
                "thinking": thinking,
            }
        )
        return await self.script(input, callbacks)


# --- Fake completion client ---


def text_response(text: str, usage: Usage | None = None) -> list[StreamChunk | CompletionResponse]:
    message = LLMMessage(role="assistant", content=text, tool_calls=None)
    return [
        StreamChunk(raw={"choices": [{"delta": {"content": text}}]}, text_delta=text),
        CompletionResponse(
            choices=[Choice(message=message, finish_reason="stop")],
            usage=usage or Usage(prompt_tokens=20, completion_tokens=5),
            model=TEST_MODEL,
        ),
    ]


def tool_response(name: str, arguments: str, call_id: str = "call_1", text: str | None = None):
    tool_call = ToolCall(id=call_id, type="function", function=FunctionCall(name=name, arguments=arguments))
    message = LLMMessage(role="assistant", content=text, tool_calls=[tool_call])
    return [
        StreamChunk(raw={"choices": [{"delta": {"tool_calls": [{"id": call_id}]}}]}),
        CompletionResponse(
            choices=[Choice(message=message, finish_reason="tool_calls")],
            usage=Usage(prompt_tokens=15, completion_tokens=3),
            model=TEST_MODEL,
        ),
    ]


class FakeClient(CompletionClient):
    def __init__(self, responses: list | None = None):
        self.responses = list(responses or [])
        self.calls: list[dict] = []
        self.closed = False

    async def stream(self, messages, model, tools=None, tool_choice=None, max_tokens=None, **kwargs):
        self.calls.append({"messages": messages, "model": model, "tools": tools, "tool_choice": tool_choice, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        for item in response:
            yield item

    async def close(self) -> None:
        self.closed = True


def fake_model(client: CompletionClient | None = None, model_id: str = TEST_MODEL) -> ModelInfo:
    return ModelInfo(meta=ModelMeta(model_id), client=client or FakeClient())
