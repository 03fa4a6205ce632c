# app/database/database.py
import logging
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from app.config import DATABASE_URL
from app.models.ielts_models import Base

logger = logging.getLogger(__name__)


def build_engine(url: str) -> Engine:
    """Engine for ``url``; SQLite connections get FK enforcement and cross-thread use."""
    is_sqlite = url.startswith("sqlite")
    engine = create_engine(url, connect_args={"check_same_thread": False} if is_sqlite else {})

    if is_sqlite:
        # SQLite leaves foreign keys off unless asked, per connection
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


engine = build_engine(DATABASE_URL)
SessionLocal = build_session_factory(engine)


def init_db(bind: Engine = engine) -> None:
    Base.metadata.create_all(bind=bind)
    logger.info(f"Database schema ready ({bind.url.get_backend_name()})")


def get_db():
    """Request-scoped session; closed once the response is sent."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
