from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional, Union

from app.api.chat import schemas, services
from app.db.session import get_db
from app.core.security import TokenIdentity, get_current_user

router = APIRouter()

# ---------------------------------------------------
# 🚀 Message Endpoint
# ---------------------------------------------------

@router.post("/message", response_model=schemas.ChatExchangeResponse)
@router.post("/message/{session_id}", response_model=schemas.ChatExchangeResponse)
def send_message(
    payload: schemas.ChatMessageRequest,
    session_id: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: TokenIdentity = Depends(get_current_user)
):
    session, reply, recent = services.append_exchange(
        db,
        user_id=current_user.id,
        user_text=payload.message,
        session_id=session_id or payload.session_id,
    )
    return schemas.ChatExchangeResponse(
        session_id=session.id,
        reply=reply,
        messages=[schemas.ChatMessageResponse.model_validate(m) for m in recent],
    )


# ---------------------------------------------------
# 📜 History
# ---------------------------------------------------

@router.get(
    "/history",
    response_model=Union[schemas.ChatHistoryResponse, schemas.ChatSessionListResponse],
)
def get_history(
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    page: int = Query(default=1),
    limit: int = Query(default=services.DEFAULT_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: TokenIdentity = Depends(get_current_user)
):
    if not session_id:
        sessions = services.list_user_chat_sessions(db, user_id=current_user.id)
        return schemas.ChatSessionListResponse(
            sessions=[schemas.ChatSessionSummary.model_validate(s) for s in sessions]
        )

    session, total, messages = services.get_session_messages(
        db, session_id, current_user.id, page=page, page_size=limit
    )
    return schemas.ChatHistoryResponse(
        session_id=session.id,
        session_title=session.title,
        total_messages=total,
        page=page,
        limit=limit,
        messages=[schemas.ChatMessageResponse.model_validate(m) for m in messages],
    )


# ---------------------------------------------------
# 🔁 Session Endpoints
# ---------------------------------------------------

@router.post("/session", response_model=schemas.ChatSessionResponse, status_code=status.HTTP_201_CREATED)
def create_session(
    payload: Optional[schemas.ChatSessionCreate] = None,
    db: Session = Depends(get_db),
    current_user: TokenIdentity = Depends(get_current_user)
):
    session = services.create_chat_session(
        db, user_id=current_user.id, title=payload.title if payload else None
    )
    return schemas.ChatSessionResponse(session_id=session.id, session_title=session.title)


@router.put("/session/{session_id}", response_model=schemas.ChatSessionResponse)
def rename_session(
    session_id: str,
    rename_data: schemas.ChatRenameRequest,
    db: Session = Depends(get_db),
    current_user: TokenIdentity = Depends(get_current_user)
):
    session = services.rename_chat_session(db, session_id, current_user.id, rename_data.title)
    return schemas.ChatSessionResponse(session_id=session.id, session_title=session.title)


@router.delete("/session/{session_id}", response_model=schemas.ChatSessionDeleteResponse)
def delete_session(
    session_id: str,
    db: Session = Depends(get_db),
    current_user: TokenIdentity = Depends(get_current_user)
):
    services.delete_chat_session(db, session_id, current_user.id)
    return {"detail": "Chat session deleted successfully"}
