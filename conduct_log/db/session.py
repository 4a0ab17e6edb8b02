# conduct_log/db/session.py
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import sessionmaker

from conduct_log.core.config import DATABASE_URL


def _ensure_sqlite_dir(url: str) -> None:
    parsed = make_url(url)
    db_name = (parsed.database or "").strip()
    if parsed.get_backend_name() == "sqlite" and db_name not in ("", ":memory:"):
        Path(db_name).resolve().parent.mkdir(parents=True, exist_ok=True)


def _unicode_lower(value):
    # SQLite's built-in lower() only folds ASCII
    return value.lower() if isinstance(value, str) else value


def build_engine(url: str = DATABASE_URL, **kwargs) -> Engine:
    """
    Create an engine. SQLite gets cross-thread access, enforced foreign keys
    and a lower() that folds non-ASCII letters the way str.lower() does.
    """
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False  # required for SQLite + threads
        _ensure_sqlite_dir(url)

    eng = create_engine(
        url,
        connect_args=connect_args,
        pool_pre_ping=True,
        future=True,
        **kwargs,
    )

    if eng.dialect.name == "sqlite":
        @event.listens_for(eng, "connect")
        def configure_sqlite(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.close()
            dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)

    return eng


engine = build_engine()

# Session factory
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    future=True,
)


def get_db():
    """Yield a DB session and make sure it's closed afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
