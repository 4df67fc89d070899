from datetime import datetime
from typing import Optional

from app.core.schemas import CamelModel

# Fields are optional on purpose: blank and missing values are both rejected
# by the service layer with the same Validation error.

class UserCreate(CamelModel):
    full_name: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

class UserLogin(CamelModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None

class RefreshRequest(CamelModel):
    refresh_token: Optional[str] = None

class PasswordChange(CamelModel):
    old_password: Optional[str] = None
    new_password: Optional[str] = None


class UserOut(CamelModel):
    id: int
    full_name: str
    username: str
    email: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class TokenPair(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"

class LoginResponse(TokenPair):
    user: UserOut

class MessageResponse(CamelModel):
    message: str
