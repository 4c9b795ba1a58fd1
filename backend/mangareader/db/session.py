from __future__ import annotations

from typing import Tuple

from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlmodel import Session, create_engine

from mangareader.core.config import get_settings


def _normalize_database_url(url: str) -> str:
    lower = url.lower()
    if lower.startswith("postgres://"):
        return "postgresql+psycopg://" + url.split("://", 1)[1]
    if lower.startswith("postgresql://") and "+" not in lower.split("://", 1)[0]:
        return "postgresql+psycopg://" + url.split("://", 1)[1]
    if lower.startswith("postgresql+psycopg2://"):
        return "postgresql+psycopg://" + url.split("://", 1)[1]
    return url


def create_engine_and_sessionmaker(database_url: str | None = None) -> Tuple[Engine, sessionmaker]:
    settings = get_settings()
    url = database_url or settings.database_url
    if not url:
        raise RuntimeError("DATABASE_URL is not configured")
    engine = create_engine(
        _normalize_database_url(url),
        echo=False,
        pool_pre_ping=True,
    )
    SessionLocal = sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False)
    return engine, SessionLocal


def check_database_connection(engine: Engine) -> bool:
    try:
        with engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
        return True
    except OperationalError:
        return False
