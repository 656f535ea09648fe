from dataclasses import replace
from datetime import UTC, datetime
from uuid import uuid4

from kodo.errors import InvalidApprovalModeError, UnknownSessionError
from kodo.logging import get_logger
from kodo.session.models import ApprovalPolicy, Message, Session, SessionState
from kodo.session.store import SessionStore
from kodo.tools.core.enums import SESSION_APPROVAL_MODES, ApprovalMode

_logger = get_logger(__name__)


class SessionService:
    def __init__(self, store: SessionStore):
        self.store = store

    async def create(self, name: str | None = None) -> Session:
        now = datetime.now(UTC)
        state = SessionState(
            session_id=f"{now.strftime('%Y%m%d_%H%M%S')}_{uuid4().hex[:6]}",
            started_at=now,
            last_activity=now,
            name=name,
        )
        await self.store.create_session(state)
        _logger.info("Created session %s", state.session_id)
        return Session(state=state)

    async def resume(self, session_id: str) -> Session:
        data = await self.store.load_session(session_id)
        if data is None:
            raise UnknownSessionError(session_id)
        _logger.info("Resumed session %s (%d messages)", session_id, len(data.history))
        return Session(state=data.state, history=data.history)

    async def commit_history(self, session: Session, messages: list[Message]) -> None:
        """Replace the committed history wholesale, durably first, then in memory."""
        await self.store.replace_history(session.id, messages)
        session.history = session.history.replaced(messages)
        session.state.last_activity = datetime.now(UTC)
        _logger.debug("Committed %d messages to session %s", len(messages), session.id)

    async def approval_policy(self, session_id: str) -> ApprovalPolicy:
        return await self.store.get_approval_policy(session_id)

    async def set_approval_mode(self, session_id: str, mode: ApprovalMode | None) -> ApprovalPolicy:
        if mode is not None and mode not in SESSION_APPROVAL_MODES:
            raise InvalidApprovalModeError(mode)
        policy = replace(await self.approval_policy(session_id), approval_mode_override=mode)
        await self._save_policy(session_id, policy)
        return policy

    async def approve_tool(self, session_id: str, tool_name: str) -> ApprovalPolicy:
        current = await self.approval_policy(session_id)
        policy = replace(current, pre_approved_tools=current.pre_approved_tools | {tool_name})
        await self._save_policy(session_id, policy)
        return policy

    async def revoke_tool(self, session_id: str, tool_name: str) -> ApprovalPolicy:
        current = await self.approval_policy(session_id)
        policy = replace(current, pre_approved_tools=current.pre_approved_tools - {tool_name})
        await self._save_policy(session_id, policy)
        return policy

    async def list_sessions(self, limit: int = 20) -> list[dict]:
        return await self.store.list_sessions(limit=limit)

    async def _save_policy(self, session_id: str, policy: ApprovalPolicy) -> None:
        if not await self.store.save_approval_policy(session_id, policy):
            raise UnknownSessionError(session_id)
