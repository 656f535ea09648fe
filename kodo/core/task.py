from collections.abc import Callable
from typing import Any

from kodo.config import Config
from kodo.context import Context
from kodo.core.driver import TurnDriver, TurnInput
from kodo.core.environment import resolve_task_environment
from kodo.core.history import assemble_input
from kodo.core.loop import LoopEngine
from kodo.core.models import (
    ExecutionEngine,
    TaskError,
    TaskFailure,
    TaskKind,
    TaskRequest,
    TaskResult,
)
from kodo.errors import TaskSetupError
from kodo.llm.models import ModelInfo, resolve_model, thinking_config
from kodo.logging import get_logger
from kodo.session.log import MessageLog, RequestLog
from kodo.session.models import Session
from kodo.session.service import SessionService
from kodo.tools.core.registry import ToolRegistry
from kodo.tools.resolver import ToolResolver

_logger = get_logger(__name__)

type ModelResolver = Callable[[str | None, str | None, Config], ModelInfo]


class Project:
    """One working directory bound to one session."""

    def __init__(
        self,
        context: Context,
        session_service: SessionService,
        session: Session,
        engine: ExecutionEngine | None = None,
        tool_resolver: ToolResolver | None = None,
        model_resolver: ModelResolver = resolve_model,
    ):
        self.context = context
        self.session_service = session_service
        self.session = session
        self.engine = engine or LoopEngine()
        self.tool_resolver = tool_resolver or ToolResolver()
        self.model_resolver = model_resolver
        self.message_log = MessageLog(context.paths.session_log_path(session.id), session.id)
        self.request_log = RequestLog(context.paths.requests_dir)

    @property
    def driver(self) -> TurnDriver:
        return TurnDriver(
            context=self.context,
            session_service=self.session_service,
            engine=self.engine,
            message_log=self.message_log,
            request_log=self.request_log,
        )

    async def send(self, message: str | None, **opts: Any) -> TaskResult:
        return await execute_task(TaskRequest(kind=TaskKind.SEND, message=message, **opts), self)

    async def plan(self, message: str | None, **opts: Any) -> TaskResult:
        return await execute_task(TaskRequest(kind=TaskKind.PLAN, message=message, **opts), self)


async def execute_task(request: TaskRequest, project: Project) -> TaskResult:
    """Configure and run one turn for ``request``.

    Setup failures (no model, no credential, tool or prompt resolution) are
    returned as a failure before anything is logged or committed. The model
    client is resolved last so no setup failure leaves one open.
    """
    session = project.session
    config = project.context.config

    try:
        env = resolve_task_environment(request.kind, project.context, session.id, project.tool_resolver)
        assembled = assemble_input(
            session.history,
            request.message,
            parent_uuid=request.parent_uuid,
            attachments=request.attachments,
        )
        model = project.model_resolver(request.model, env.default_model, config)
    except TaskSetupError as e:
        _logger.warning("Task %s for session %s not started: %s", request.kind, session.id, e)
        return TaskFailure(error=TaskError(message=str(e), code=type(e).__name__))

    _logger.info(
        "Running %s task (session=%s, model=%s, tools=%d, parent=%s)",
        request.kind,
        session.id,
        model.id,
        len(env.tools),
        request.parent_uuid,
    )

    turn = TurnInput(
        session=session,
        input=assembled.messages,
        user_message=assembled.user_message,
        model=model,
        tools=ToolRegistry(env.tools),
        system_prompt=env.system_prompt,
        auto_approve_tools=env.auto_approve_tools,
        callbacks=request.callbacks,
        cancel_check=request.cancel_check,
        thinking=thinking_config(model.meta, request.thinking_effort) if request.thinking_effort else None,
    )
    try:
        return await project.driver.run(turn)
    finally:
        await model.client.close()
