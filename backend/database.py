import os
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# Use DATABASE_PATH env var for Docker, default to local path for development
DATABASE_PATH = os.environ.get("DATABASE_PATH", "./tabkeeper.db")
SQLALCHEMY_DATABASE_URL = f"sqlite:///{DATABASE_PATH}"

Base = declarative_base()


def make_engine(url: str):
    """SQLite engine usable from FastAPI's threadpool."""
    kwargs = {"connect_args": {"check_same_thread": False}}
    # An in-memory database only exists on its one connection
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def make_session_factory(bind):
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


engine = make_engine(SQLALCHEMY_DATABASE_URL)
SessionLocal = make_session_factory(engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
