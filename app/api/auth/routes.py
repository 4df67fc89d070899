from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Response, status
from sqlalchemy.orm import Session

from app.config import settings
from app.db.session import get_db
from app.api.auth import schemas, services
from app.core.security import (
    ACCESS_COOKIE_NAME,
    REFRESH_COOKIE_NAME,
    TokenIdentity,
    get_current_user,
)

router = APIRouter()


def _set_token_cookies(response: Response, access_token: str, refresh_token: str):
    options = {
        "httponly": True,
        "secure": settings.COOKIE_SECURE,
        "samesite": settings.COOKIE_SAMESITE,
    }
    response.set_cookie(
        ACCESS_COOKIE_NAME, access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60, **options
    )
    response.set_cookie(
        REFRESH_COOKIE_NAME, refresh_token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 3600, **options
    )


def _clear_token_cookies(response: Response):
    for name in (ACCESS_COOKIE_NAME, REFRESH_COOKIE_NAME):
        response.delete_cookie(
            name, httponly=True, secure=settings.COOKIE_SECURE, samesite=settings.COOKIE_SAMESITE
        )


@router.post("/register", response_model=schemas.UserOut, status_code=status.HTTP_201_CREATED)
def register(user: schemas.UserCreate, db: Session = Depends(get_db)):
    return services.register_user(
        db,
        full_name=user.full_name,
        email=user.email,
        username=user.username,
        password=user.password,
    )


@router.post("/login", response_model=schemas.LoginResponse)
def login(credentials: schemas.UserLogin, response: Response, db: Session = Depends(get_db)):
    access_token, refresh_token, user = services.login_user(
        db,
        password=credentials.password,
        username=credentials.username,
        email=credentials.email,
    )
    _set_token_cookies(response, access_token, refresh_token)
    return schemas.LoginResponse(
        user=schemas.UserOut.model_validate(user),
        access_token=access_token,
        refresh_token=refresh_token,
    )


@router.post("/refresh", response_model=schemas.TokenPair)
def refresh(
    response: Response,
    payload: Optional[schemas.RefreshRequest] = None,
    refresh_cookie: Optional[str] = Cookie(default=None, alias=REFRESH_COOKIE_NAME),
    db: Session = Depends(get_db),
):
    presented = (payload.refresh_token if payload else None) or refresh_cookie
    access_token, refresh_token = services.rotate_refresh_token(db, presented)
    _set_token_cookies(response, access_token, refresh_token)
    return schemas.TokenPair(access_token=access_token, refresh_token=refresh_token)


@router.post("/logout", response_model=schemas.MessageResponse)
def logout(
    response: Response,
    db: Session = Depends(get_db),
    current_user: TokenIdentity = Depends(get_current_user),
):
    services.logout_user(db, current_user.id)
    _clear_token_cookies(response)
    return {"message": "User logged out"}


@router.post("/password", response_model=schemas.MessageResponse)
def change_password(
    payload: schemas.PasswordChange,
    db: Session = Depends(get_db),
    current_user: TokenIdentity = Depends(get_current_user),
):
    services.change_password(db, current_user.id, payload.old_password, payload.new_password)
    return {"message": "Password changed successfully"}


@router.get("/me", response_model=schemas.UserOut)
def read_current_user(
    db: Session = Depends(get_db),
    current_user: TokenIdentity = Depends(get_current_user),
):
    return services.get_user(db, current_user.id)
