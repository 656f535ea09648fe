from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator

from kodo.llm.types import CompletionResponse, StreamChunk


class CompletionClient(ABC):
    @abstractmethod
    def stream(
        self,
        messages: list[dict],
        model: str,
        tools: list[dict] | None = None,
        tool_choice: str | None = None,
        max_tokens: int | None = None,
        **kwargs,
    ) -> AsyncGenerator[StreamChunk | CompletionResponse]:
        """Yield raw chunks as they arrive, then one assembled CompletionResponse."""

    @abstractmethod
    async def close(self) -> None: ...
