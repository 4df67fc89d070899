from typing import List, Optional

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./chatbot.db"
    SECRET_KEY: str
    REFRESH_SECRET_KEY: Optional[str] = None  # falls back to SECRET_KEY
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    ENV: str = "local"  # Environment setting

    # bcrypt cost factor
    PASSWORD_HASH_ROUNDS: int = 12

    # Auth cookies
    COOKIE_SECURE: bool = True
    COOKIE_SAMESITE: str = "lax"

    CORS_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

    @property
    def refresh_secret(self) -> str:
        return self.REFRESH_SECRET_KEY or self.SECRET_KEY

settings = Settings()
