from dataclasses import dataclass

from kodo.session.models import ConversationHistory, Message, UserContent
from kodo.utils import iso_now, new_uuid


@dataclass(frozen=True)
class AssembledInput:
    messages: list[Message]
    user_message: Message | None


def build_user_content(message: str, attachments: list[dict] | None = None) -> UserContent:
    if not attachments:
        return message
    return [{"type": "text", "text": message}, *attachments]


def assemble_input(
    history: ConversationHistory,
    message: str | None,
    *,
    parent_uuid: str | None = None,
    attachments: list[dict] | None = None,
) -> AssembledInput:
    """Derive the linear model input for a turn.

    Only builds a view: the history itself is never modified. With ``parent_uuid``
    the prefix ends at that message (a branch point); otherwise it is the full
    committed path. Raises UnknownMessageError for an unreachable ``parent_uuid``.
    """
    selected = history.messages_up_to(parent_uuid) if parent_uuid else history.messages

    if message is None:
        return AssembledInput(messages=list(selected), user_message=None)

    user_message = Message(
        uuid=new_uuid(),
        parent_uuid=selected[-1].uuid if selected else None,
        role="user",
        content=build_user_content(message, attachments),
        type="message",
        timestamp=iso_now(),
    )
    return AssembledInput(messages=[*selected, user_message], user_message=user_message)
