import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from ceycanvas.config import settings

LOGGER = logging.getLogger(__name__)


def _build_database_url() -> str:
    raw_url = settings.database_url
    if raw_url.startswith("postgresql://"):
        return raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return raw_url


def _connect_args(url: str) -> dict:
    # Sync handlers run in the threadpool, so one SQLite connection may cross threads.
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


DATABASE_URL = _build_database_url()
engine = create_engine(
    DATABASE_URL or "sqlite://",
    pool_pre_ping=True,
    connect_args=_connect_args(DATABASE_URL),
)
SessionLocal = sessionmaker(
    bind=engine, autoflush=False, autocommit=False, expire_on_commit=False
)
Base = declarative_base()

_initialized = False


def init_db() -> None:
    if not DATABASE_URL:
        raise RuntimeError("DATABASE_URL is not configured")
    from ceycanvas.models import message as _message  # noqa: F401
    from ceycanvas.models import otp as _otp  # noqa: F401
    from ceycanvas.models import user as _user  # noqa: F401

    Base.metadata.create_all(bind=engine)


def ensure_db() -> None:
    """Create the schema once per process; a failed attempt is retried next call."""
    global _initialized
    if _initialized:
        return
    init_db()
    _initialized = True
    LOGGER.info("Database initialized")


@contextmanager
def session_scope():
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
