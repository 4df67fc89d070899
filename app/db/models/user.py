from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime
from app.db.session import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    username = Column(String, unique=True, index=True, nullable=False)  # stored lower-cased
    email = Column(String, unique=True, index=True, nullable=False)  # stored lower-cased
    hashed_password = Column(String, nullable=False)

    # The single currently-valid refresh token, overwritten on login/rotation
    refresh_token = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
