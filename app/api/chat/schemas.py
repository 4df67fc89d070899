from typing import List, Optional
from uuid import UUID
from datetime import datetime

from app.core.schemas import CamelModel

# -----------------------------
# 🧾 Message Schemas
# -----------------------------

class ChatMessageRequest(CamelModel):
    message: Optional[str] = None
    session_id: Optional[str] = None

class ChatMessageResponse(CamelModel):
    id: int
    sender: str
    content: str
    created_at: datetime

class ChatExchangeResponse(CamelModel):
    session_id: UUID
    reply: str
    messages: List[ChatMessageResponse] = []


# -----------------------------
# 📁 Session Schemas
# -----------------------------

class ChatSessionCreate(CamelModel):
    title: Optional[str] = None

class ChatSessionResponse(CamelModel):
    session_id: UUID
    session_title: str

class ChatSessionSummary(CamelModel):
    session_id: UUID
    session_title: str
    updated_at: datetime
    total_messages: int
    last_message: Optional[ChatMessageResponse] = None

class ChatSessionListResponse(CamelModel):
    sessions: List[ChatSessionSummary] = []

class ChatHistoryResponse(CamelModel):
    session_id: UUID
    session_title: str
    total_messages: int
    page: int
    limit: int
    messages: List[ChatMessageResponse] = []


# -----------------------------
# ✏️ Rename / Delete
# -----------------------------

class ChatRenameRequest(CamelModel):
    title: Optional[str] = None

class ChatSessionDeleteResponse(CamelModel):
    detail: str
