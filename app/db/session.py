import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from app.config import settings

logger = logging.getLogger(__name__)


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        # FastAPI runs sync endpoints in a threadpool
        return {"check_same_thread": False}
    if url.startswith("postgresql"):
        return {"options": "-csearch_path=public"}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args(settings.DATABASE_URL)
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

Base = declarative_base()


def init_db():
    """Create all tables that don't exist yet."""
    # Models must be imported so they register with Base.metadata
    from app.db.models import user  # noqa: F401
    from app.db.models.chat import chat_session, chat_message  # noqa: F401

    logger.info("Creating tables (if not exist) on %s", engine.url.render_as_string(hide_password=True))
    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
