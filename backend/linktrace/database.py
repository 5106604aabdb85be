import sqlite3
import threading
from pathlib import Path

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings
from .logging_config import get_logger

logger = get_logger(__name__)


def build_database_url() -> str:
    if settings.DATABASE_URL:
        return settings.DATABASE_URL
    if settings.DEV_MODE:
        db_file = Path(__file__).resolve().parents[1] / "dev.db"
        return f"sqlite:///{db_file}"
    return f"mysql+pymysql://{settings.MYSQL_USER}:{settings.MYSQL_PASSWORD}@{settings.MYSQL_HOST}:{settings.MYSQL_PORT}/{settings.MYSQL_DATABASE}"


DATABASE_URL = build_database_url()

# File-backed SQLite is shared across the threadpool workers, so the
# same-thread check has to go.
if DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )
else:
    engine = create_engine(
        DATABASE_URL,
        pool_pre_ping=True,
        pool_recycle=3600,
        pool_size=10,
        max_overflow=20
    )


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores REFERENCES unless enabled per connection
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

_schema_lock = threading.Lock()
_initialized_engines: set = set()

# Columns added after the first release of the clicks table
_ADDITIVE_COLUMNS = {
    "clicks": ("lat", "lng", "webrtc_ip", "fingerprint"),
}


def _add_missing_columns(bind: Engine) -> None:
    inspector = inspect(bind)
    for table_name, column_names in _ADDITIVE_COLUMNS.items():
        table = Base.metadata.tables[table_name]
        existing = {col["name"] for col in inspector.get_columns(table_name)}
        for name in column_names:
            if name in existing:
                continue
            col_type = table.c[name].type.compile(dialect=bind.dialect)
            with bind.begin() as conn:
                conn.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {name} {col_type}"))
            logger.info(f"Migrated {table_name}: added column {name}")


def init_db(bind: Engine = None) -> None:
    """
    Create tables, apply additive migrations and ensure indexes.
    Runs at most once per engine; safe to call from any thread.
    """
    bind = bind or engine
    if bind in _initialized_engines:
        return

    with _schema_lock:
        if bind in _initialized_engines:
            return

        from . import models  # noqa: F401  (registers tables on Base)

        Base.metadata.create_all(bind=bind)
        _add_missing_columns(bind)
        for table in Base.metadata.sorted_tables:
            for index in table.indexes:
                index.create(bind=bind, checkfirst=True)

        _initialized_engines.add(bind)
        logger.info("Database schema initialized")


def get_db():
    """Dependency for getting database sessions."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
