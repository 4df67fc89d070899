# app/db/models/chat/chat_message.py
from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime

from app.db.session import Base

SENDER_USER = "user"
SENDER_BOT = "bot"

class ChatMessage(Base):
    __tablename__ = "chat_messages"

    # Autoincrement id doubles as chronological order within a session
    id = Column(Integer, primary_key=True, autoincrement=True)
    chat_session_id = Column(Uuid(as_uuid=True), ForeignKey('chat_sessions.id', ondelete="CASCADE"), index=True, nullable=False)
    sender = Column(String(10), nullable=False)  # 'user' or 'bot'
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    session = relationship("ChatSession", back_populates="messages")
