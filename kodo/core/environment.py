from dataclasses import dataclass

from kodo.context import Context
from kodo.core.models import TaskKind
from kodo.core.prompts import build_plan_system_prompt, build_system_prompt
from kodo.errors import PromptError
from kodo.tools.core.base import Tool
from kodo.tools.resolver import ToolResolver


@dataclass(frozen=True)
class TaskEnvironment:
    tools: list[Tool]
    system_prompt: str
    default_model: str | None
    auto_approve_tools: bool


def resolve_task_environment(
    kind: TaskKind,
    context: Context,
    session_id: str,
    tool_resolver: ToolResolver,
) -> TaskEnvironment:
    """Pick tools, prompt, default model and approval posture for a task kind.

    Plan tasks never see write-capable or task-list tools, which is what makes
    auto-approving their tool calls safe.
    """
    is_plan = kind == TaskKind.PLAN
    config = context.config

    tools = tool_resolver.resolve(
        context,
        session_id,
        include_write=not is_plan,
        include_task_list=not is_plan,
    )

    try:
        if is_plan:
            system_prompt = build_plan_system_prompt(
                product_name=context.product_name,
                language=config.language,
            )
        else:
            system_prompt = build_system_prompt(
                product_name=context.product_name,
                todo=config.todo,
                language=config.language,
            )
    except (KeyError, ValueError) as e:
        raise PromptError(f"Failed to build system prompt: {e}") from e

    return TaskEnvironment(
        tools=tools,
        system_prompt=system_prompt,
        default_model=config.plan_model if is_plan else config.model,
        auto_approve_tools=is_plan,
    )
