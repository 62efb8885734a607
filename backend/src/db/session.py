"""SQLAlchemy engine and session factory for the application database."""

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from .config import get_settings


settings = get_settings()
_engine_kwargs = {"echo": settings.echo, "future": True}
if not settings.is_sqlite:
    _engine_kwargs["pool_size"] = settings.pool_size
    _engine_kwargs["pool_pre_ping"] = True
engine = create_engine(settings.url, **_engine_kwargs)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)


@contextmanager
def session_scope() -> Session:
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
