from pathlib import Path
from typing import Any

from kodo.context import Context
from kodo.core.models import ExecutionEngine, TaskResult
from kodo.core.task import Project
from kodo.logging import get_logger
from kodo.session.models import ApprovalPolicy
from kodo.session.service import SessionService
from kodo.session.store import SessionStore
from kodo.tools.core.enums import ApprovalMode
from kodo.tools.resolver import ToolResolver

_logger = get_logger(__name__)


class AgentService:
    """Entry point for embedding the agent: one context, one session, one store."""

    def __init__(self, context: Context, store: SessionStore, project: Project):
        self.context = context
        self.store = store
        self.project = project

    @property
    def session_id(self) -> str:
        return self.project.session.id

    async def send(self, message: str | None, **opts: Any) -> TaskResult:
        return await self.project.send(message, **opts)

    async def plan(self, message: str | None, **opts: Any) -> TaskResult:
        return await self.project.plan(message, **opts)

    async def set_approval_mode(self, mode: ApprovalMode | None) -> ApprovalPolicy:
        return await self.project.session_service.set_approval_mode(self.session_id, mode)

    async def approve_tool(self, tool_name: str) -> ApprovalPolicy:
        return await self.project.session_service.approve_tool(self.session_id, tool_name)

    async def destroy(self) -> None:
        await self.store.close()
        _logger.debug("Agent service for session %s closed", self.session_id)


async def create_agent_service(
    cwd: str | Path,
    product_name: str,
    version: str,
    session_id: str | None = None,
    config_overrides: dict | None = None,
    engine: ExecutionEngine | None = None,
    tool_resolver: ToolResolver | None = None,
    data_dir: Path | None = None,
) -> AgentService:
    context = Context.create(
        cwd,
        product_name=product_name,
        version=version,
        config_overrides=config_overrides,
        data_dir=data_dir,
    )
    store = SessionStore(context.paths.sessions_db_path)
    await store.connect()

    try:
        sessions = SessionService(store)
        session = await sessions.resume(session_id) if session_id else await sessions.create()
    except Exception:
        await store.close()
        raise

    project = Project(
        context=context,
        session_service=sessions,
        session=session,
        engine=engine,
        tool_resolver=tool_resolver,
    )
    return AgentService(context=context, store=store, project=project)
