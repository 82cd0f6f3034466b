from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from corpsjournal.core.config import settings


def _connect_args(url: str) -> dict:
    # The lock engine and request handlers may touch SQLite from different threads
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args(settings.DATABASE_URL),
    future=True,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
