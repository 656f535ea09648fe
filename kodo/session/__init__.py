"""Session history, approval policy, and durable logs."""

from kodo.session.log import MessageLog, RequestLog
from kodo.session.models import ApprovalPolicy, ConversationHistory, Message, Session, SessionState
from kodo.session.service import SessionService
from kodo.session.store import SessionStore

__all__ = [
    "ApprovalPolicy",
    "ConversationHistory",
    "Message",
    "MessageLog",
    "RequestLog",
    "Session",
    "SessionService",
    "SessionState",
    "SessionStore",
]
