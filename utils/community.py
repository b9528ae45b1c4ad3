"""Notice board and messenger operations on the society state."""
from flask import current_app

from models import MESSAGE_TYPES, NOTICE_TYPES, AppState, ChatMessage, Notice, User, generate_id, now_ms


class CommunityError(Exception):
    """Raised when a notice or chat message cannot be posted or removed."""


def can_manage_notices(user: User | None) -> bool:
    return bool(user and (user.is_admin or user.is_super_admin))


def post_notice(state: AppState, author: User, title: str, content: str, notice_type: str = "INFO") -> Notice:
    title = (title or "").strip()
    content = (content or "").strip()
    if not title or not content:
        raise CommunityError("A notice needs a title and content.")
    if notice_type not in NOTICE_TYPES:
        raise CommunityError(f"Unknown notice type: {notice_type}")
    notice = Notice(
        id=generate_id(),
        title=title,
        content=content,
        type=notice_type,
        timestamp=now_ms(),
        author=author.house_number,
    )
    state.notices.insert(0, notice)
    current_app.logger.info(
        "Notice posted",
        extra={"notice_id": notice.id, "author": author.house_number, "type": notice_type},
    )
    return notice


def delete_notice(state: AppState, notice_id: str) -> Notice:
    notice = state.find_notice(notice_id)
    if not notice:
        raise CommunityError("Notice not found.")
    state.notices.remove(notice)
    current_app.logger.info("Notice deleted", extra={"notice_id": notice_id})
    return notice


def post_message(
    state: AppState,
    sender: User,
    content: str,
    message_type: str = "GROUP",
    recipient_house: str | None = None,
) -> ChatMessage:
    content = (content or "").strip()
    if not content:
        raise CommunityError("Message is empty.")
    if message_type not in MESSAGE_TYPES:
        raise CommunityError(f"Unknown message type: {message_type}")

    recipient = None
    if message_type == "DIRECT":
        target = state.find_user(recipient_house)
        if not target:
            raise CommunityError("Direct messages need an existing recipient.")
        if target.house_number == sender.house_number:
            raise CommunityError("You cannot message yourself.")
        recipient = target.house_number

    message = ChatMessage(
        id=generate_id(),
        sender_house=sender.house_number,
        sender_role=sender.role,
        type=message_type,
        content=content,
        timestamp=now_ms(),
        recipient_house=recipient,
    )
    state.chat_messages.append(message)
    current_app.logger.info(
        "Chat message posted",
        extra={"message_id": message.id, "type": message_type, "sender": sender.house_number},
    )
    return message


def conversation(state: AppState, viewer_house: str, peer_house: str | None = None) -> list[ChatMessage]:
    """Messages for one chat pane: the group thread, or the direct thread with ``peer_house``."""
    if not peer_house:
        return [m for m in state.chat_messages if m.type == "GROUP"]
    pair = {viewer_house, peer_house}
    return [
        m
        for m in state.chat_messages
        if m.type == "DIRECT" and {m.sender_house, m.recipient_house} == pair
    ]


def contacts(state: AppState, viewer: User) -> dict[str, list[User]]:
    others = [u for u in state.users if u.house_number != viewer.house_number]
    return {
        "admins": [u for u in others if not u.is_resident],
        "residents": [u for u in others if u.is_resident],
    }
