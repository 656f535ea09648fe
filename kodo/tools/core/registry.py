from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError

from kodo.tools.core.base import Tool, ToolResult
from kodo.tools.core.context import ToolExecution


def _describe_validation(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(map(str, item.get("loc", ())))
        if location:
            problems.append(f"{location}: {item['msg']}")
    return "; ".join(problems)


class ToolRegistry:
    """Name-indexed set of tools offered to the model for one run."""

    def __init__(self, tools: Iterable[Tool] = ()):
        self._by_name: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        self._by_name[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._by_name.get(name)

    async def execute(self, name: str, execution: ToolExecution, arguments: dict[str, Any]) -> ToolResult:
        if name not in self._by_name:
            return ToolResult(
                content=f"Unknown tool: {name}. Only the tools listed in this request can be called.",
                preview="Unknown tool",
                is_error=True,
            )
        tool = self._by_name[name]

        if tool.input_model is not None:
            try:
                arguments = tool.input_model.model_validate(arguments).model_dump()
            except ValidationError as e:
                return ToolResult(
                    content=f"Invalid arguments: {_describe_validation(e)}",
                    preview="Validation error",
                    is_error=True,
                )

        return await tool.execute(execution, **arguments)

    def get_schemas(self) -> list[dict]:
        return [tool.to_dict() for tool in self._by_name.values()]

    @property
    def tools(self) -> list[Tool]:
        return list(self._by_name.values())

    @property
    def names(self) -> list[str]:
        return list(self._by_name)

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._by_name)
