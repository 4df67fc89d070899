# app/api/chat/services.py

import logging
from uuid import UUID
from datetime import datetime
from typing import List, Optional, Tuple, Union

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.agent.reply_engine import resolve
from app.core.errors import AppError
from app.db.models.chat.chat_session import ChatSession, DEFAULT_SESSION_TITLE
from app.db.models.chat.chat_message import ChatMessage, SENDER_BOT, SENDER_USER

logger = logging.getLogger(__name__)

RECENT_MESSAGES_WINDOW = 10
MAX_LISTED_SESSIONS = 100
DEFAULT_PAGE_SIZE = 50

SESSION_NOT_FOUND = "Chat session not found"


def _parse_session_id(session_id: Union[str, UUID, None]) -> Optional[UUID]:
    if isinstance(session_id, UUID):
        return session_id
    try:
        return UUID(str(session_id))
    except (TypeError, ValueError):
        return None


def _rollback_internal(db: Session, action: str):
    db.rollback()
    logger.exception("Database failure while trying to %s", action)
    return AppError.internal()


# ---------------------------------------------------
# 🛠️ Chat Session Management
# ---------------------------------------------------

def get_chat_session(db: Session, session_id: Union[str, UUID], user_id: int) -> ChatSession:
    """
    Fetch a session owned by `user_id`. Someone else's session and a missing
    one raise the same NotFound.
    """
    parsed_id = _parse_session_id(session_id)
    session = None
    if parsed_id is not None:
        session = db.query(ChatSession)\
                    .filter(ChatSession.id == parsed_id, ChatSession.user_id == user_id)\
                    .first()
    if session is None:
        raise AppError.not_found(SESSION_NOT_FOUND)
    return session


def _new_session(user_id: int, title: Optional[str] = None) -> ChatSession:
    title = title.strip() if title and title.strip() else DEFAULT_SESSION_TITLE
    now = datetime.utcnow()
    return ChatSession(user_id=user_id, title=title, created_at=now, updated_at=now)


def create_chat_session(db: Session, user_id: int, title: Optional[str] = None) -> ChatSession:
    """Create a new, empty chat session."""
    chat_session = _new_session(user_id, title)
    db.add(chat_session)
    try:
        db.commit()
    except SQLAlchemyError:
        raise _rollback_internal(db, "create chat session")
    db.refresh(chat_session)
    logger.info("Created chat session %s for user id=%s", chat_session.id, user_id)
    return chat_session


def list_user_chat_sessions(db: Session, user_id: int) -> List[dict]:
    """Summaries of the user's most recently updated sessions, newest first."""
    message_stats = db.query(
        ChatMessage.chat_session_id.label("session_id"),
        func.count(ChatMessage.id).label("total"),
        func.max(ChatMessage.id).label("last_id"),
    ).join(ChatSession, ChatSession.id == ChatMessage.chat_session_id)\
     .filter(ChatSession.user_id == user_id)\
     .group_by(ChatMessage.chat_session_id)\
     .subquery()

    rows = db.query(ChatSession, message_stats.c.total, message_stats.c.last_id)\
             .outerjoin(message_stats, message_stats.c.session_id == ChatSession.id)\
             .filter(ChatSession.user_id == user_id)\
             .order_by(ChatSession.updated_at.desc(), ChatSession.created_at.desc())\
             .limit(MAX_LISTED_SESSIONS)\
             .all()

    last_ids = [last_id for _, _, last_id in rows if last_id is not None]
    last_messages = {}
    if last_ids:
        last_messages = {
            message.id: message
            for message in db.query(ChatMessage).filter(ChatMessage.id.in_(last_ids))
        }

    return [
        {
            "session_id": session.id,
            "session_title": session.title,
            "updated_at": session.updated_at,
            "total_messages": total or 0,
            "last_message": last_messages.get(last_id),
        }
        for session, total, last_id in rows
    ]


def get_session_messages(db: Session, session_id: Union[str, UUID], user_id: int,
                         page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> Tuple[ChatSession, int, List[ChatMessage]]:
    """
    Page through a session's messages counting back from the newest one.
    Page 1 is the latest `page_size` messages; each page keeps chronological order.
    """
    if page < 1 or page_size < 1:
        raise AppError.validation("page and limit must be positive integers")

    session = get_chat_session(db, session_id, user_id)

    total = db.query(func.count(ChatMessage.id))\
              .filter(ChatMessage.chat_session_id == session.id)\
              .scalar()
    start = max(total - page * page_size, 0)
    end = max(total - (page - 1) * page_size, 0)

    messages = []
    if end > start:
        messages = db.query(ChatMessage)\
                     .filter(ChatMessage.chat_session_id == session.id)\
                     .order_by(ChatMessage.id.asc())\
                     .offset(start)\
                     .limit(end - start)\
                     .all()
    return session, total, messages


def rename_chat_session(db: Session, session_id: Union[str, UUID], user_id: int,
                        new_title: Optional[str]) -> ChatSession:
    """Rename a chat session."""
    if not new_title or not new_title.strip():
        raise AppError.validation("Title is required")

    chat_session = get_chat_session(db, session_id, user_id)
    chat_session.title = new_title.strip()
    chat_session.updated_at = datetime.utcnow()
    try:
        db.commit()
    except SQLAlchemyError:
        raise _rollback_internal(db, "rename chat session")
    db.refresh(chat_session)
    return chat_session


def delete_chat_session(db: Session, session_id: Union[str, UUID], user_id: int) -> None:
    """Delete a chat session and its messages."""
    chat_session = get_chat_session(db, session_id, user_id)
    db.delete(chat_session)
    try:
        db.commit()
    except SQLAlchemyError:
        raise _rollback_internal(db, "delete chat session")
    logger.info("Deleted chat session %s for user id=%s", session_id, user_id)


# ---------------------------------------------------
# 🤖 Message Handling
# ---------------------------------------------------

def append_exchange(db: Session, user_id: int, user_text: Optional[str],
                    session_id: Union[str, UUID, None] = None) -> Tuple[ChatSession, str, List[ChatMessage]]:
    """
    Store the user's message and the bot's reply, creating a session first when
    no `session_id` is given.

    Both messages (and the new session, if any) go into a single transaction,
    so either the whole exchange is stored or none of it is.
    Returns (session, reply_text, last RECENT_MESSAGES_WINDOW messages).
    """
    if not user_text or not str(user_text).strip():
        raise AppError.validation("Message is required")

    if session_id:
        chat_session = get_chat_session(db, session_id, user_id)
    else:
        chat_session = _new_session(user_id)
        db.add(chat_session)

    reply_text = resolve(user_text)

    try:
        db.flush()  # assigns the id of a freshly created session
        db.add(ChatMessage(chat_session_id=chat_session.id, sender=SENDER_USER, content=user_text))
        # Separate flush keeps the user message's id lower than the reply's
        db.flush()
        db.add(ChatMessage(chat_session_id=chat_session.id, sender=SENDER_BOT, content=reply_text))
        chat_session.updated_at = datetime.utcnow()
        db.commit()
    except SQLAlchemyError:
        raise _rollback_internal(db, "store chat exchange")

    recent = db.query(ChatMessage)\
               .filter(ChatMessage.chat_session_id == chat_session.id)\
               .order_by(ChatMessage.id.desc())\
               .limit(RECENT_MESSAGES_WINDOW)\
               .all()
    recent.reverse()
    return chat_session, reply_text, recent
