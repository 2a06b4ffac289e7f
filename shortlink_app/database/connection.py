"""
Database engine and session factory.

The rest of the app only touches the database through sessions created here,
either via the `get_db` dependency (requests) or `SessionLocal` directly
(scripts and background jobs).
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from shortlink_app.config import settings


def _connect_args(database_url: str) -> dict:
    # SQLite connections are shared with FastAPI's threadpool
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.database_url,
    connect_args=_connect_args(settings.database_url),
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Yield a database session and close it when the request is done."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
