from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from foodorder.config import settings

# SQLite needs this for the threaded test client / dev server
_connect_args = {"check_same_thread": False} if settings.DB_URL.startswith("sqlite") else {}

engine = create_engine(settings.DB_URL, connect_args=_connect_args)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def get_db():
    """FastAPI dependency: one session (and transaction) per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
