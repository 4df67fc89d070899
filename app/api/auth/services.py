import logging
from typing import Optional, Tuple

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import AppError
from app.core.hashing import Hasher
from app.core.security import create_access_token, create_refresh_token, decode_refresh_token
from app.db.models.user import User

logger = logging.getLogger(__name__)


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _issue_tokens(user: User) -> Tuple[str, str]:
    return (
        create_access_token(user.id, user.username, user.email),
        create_refresh_token(user.id),
    )


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Database failure while trying to %s", action)
        raise AppError.internal()


# ---------------------------------------------------
# 🧾 Registration
# ---------------------------------------------------

def register_user(db: Session, full_name: Optional[str], email: Optional[str],
                  username: Optional[str], password: Optional[str]) -> User:
    if any(_blank(field) for field in (full_name, email, username, password)):
        raise AppError.validation("All fields are compulsory")

    try:
        email = validate_email(email.strip(), check_deliverability=False).normalized.lower()
    except EmailNotValidError:
        raise AppError.validation("Email address is not valid")
    username = username.strip().lower()

    existing = db.query(User).filter(or_(User.username == username, User.email == email)).first()
    if existing:
        raise AppError.conflict("User already exist")

    try:
        hashed_password = Hasher.hash_password(password)
    except (ValueError, TypeError):
        logger.exception("Password hashing failed for new user %s", username)
        raise AppError.internal()

    user = User(
        full_name=full_name.strip(),
        email=email,
        username=username,
        hashed_password=hashed_password,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration
        db.rollback()
        raise AppError.conflict("User already exist")
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Database failure while registering %s", username)
        raise AppError.internal()

    db.refresh(user)
    logger.info("Registered user id=%s username=%s", user.id, user.username)
    return user


# ---------------------------------------------------
# 🔐 Login / Refresh / Logout
# ---------------------------------------------------

def login_user(db: Session, password: Optional[str], username: Optional[str] = None,
               email: Optional[str] = None) -> Tuple[str, str, User]:
    """
    Authenticate by username or email. Returns (access_token, refresh_token, user)
    and stores the refresh token, replacing any previous one.
    """
    if _blank(username) and _blank(email):
        raise AppError.validation("Username or email is required")
    if _blank(password):
        raise AppError.validation("Password is required")

    # Username wins when both are sent so the lookup names a single row
    if not _blank(username):
        lookup = User.username == username.strip().lower()
    else:
        lookup = User.email == email.strip().lower()

    user = db.query(User).filter(lookup).first()
    if not user:
        raise AppError.not_found("User does not exist")

    if not Hasher.verify_password(password, user.hashed_password):
        logger.info("Failed login for user id=%s", user.id)
        raise AppError.unauthorized("Invalid user credentials")

    if Hasher.needs_rehash(user.hashed_password):
        user.hashed_password = Hasher.hash_password(password)
        logger.info("Upgraded password hash for user id=%s", user.id)

    access_token, refresh_token = _issue_tokens(user)
    user.refresh_token = refresh_token
    _commit(db, "store refresh token")
    db.refresh(user)

    logger.info("User id=%s logged in", user.id)
    return access_token, refresh_token, user


def rotate_refresh_token(db: Session, presented_token: Optional[str]) -> Tuple[str, str]:
    """
    Exchange a refresh token for a new pair. The stored token is replaced with a
    compare-and-swap so that two concurrent uses of the same token cannot both win.
    """
    if _blank(presented_token):
        raise AppError.unauthorized("Refresh token is required")

    user_id = decode_refresh_token(presented_token)
    user = db.get(User, user_id)
    if user is None:
        logger.warning("Refresh token for unknown user id=%s", user_id)
        raise AppError.unauthorized()

    access_token, refresh_token = _issue_tokens(user)
    try:
        updated = (
            db.query(User)
            .filter(User.id == user_id, User.refresh_token == presented_token)
            .update({User.refresh_token: refresh_token}, synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Database failure while rotating refresh token for user id=%s", user_id)
        raise AppError.internal()

    if updated != 1:
        logger.warning("Rejected stale or reused refresh token for user id=%s", user_id)
        raise AppError.unauthorized()

    logger.info("Rotated refresh token for user id=%s", user_id)
    return access_token, refresh_token


def logout_user(db: Session, user_id: int) -> None:
    """Clear the stored refresh token. Safe to call when already logged out."""
    try:
        db.query(User).filter(User.id == user_id).update(
            {User.refresh_token: None}, synchronize_session=False
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Database failure while logging out user id=%s", user_id)
        raise AppError.internal()
    logger.info("User id=%s logged out", user_id)


# ---------------------------------------------------
# 👤 Account
# ---------------------------------------------------

def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise AppError.not_found("User does not exist")
    return user


def change_password(db: Session, user_id: int, old_password: Optional[str],
                    new_password: Optional[str]) -> None:
    if _blank(old_password) or _blank(new_password):
        raise AppError.validation("Old and new password are required")

    user = get_user(db, user_id)
    if not Hasher.verify_password(old_password, user.hashed_password):
        logger.info("Password change rejected for user id=%s", user_id)
        raise AppError.unauthorized("Invalid old password")

    user.hashed_password = Hasher.hash_password(new_password)
    _commit(db, "change password")
    logger.info("Password changed for user id=%s", user_id)
