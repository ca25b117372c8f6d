from sqlmodel import SQLModel, create_engine, Session
from sqlalchemy import event
import os
import structlog

from pdflearn import models  # noqa: F401  registers tables on SQLModel.metadata

logger = structlog.get_logger()

# Prefer DATABASE_URL (e.g., Postgres). Fallback to local SQLite.
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./pdflearn.db")

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, echo=False, connect_args=_connect_args)


if DATABASE_URL.startswith("sqlite"):
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        # SQLite ignores ON DELETE CASCADE unless this is set per connection
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def init_db() -> None:
    """Create all tables if they don't exist."""
    SQLModel.metadata.create_all(engine)
    logger.info("database_initialized", url=engine.url.render_as_string(hide_password=True))


def get_session():
    with Session(engine) as session:
        yield session
