from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base

from app.core.config import settings
from app.core.errors import DatabaseNotConfigured

Base = declarative_base()

engine = None
SessionLocal = None


def _enable_sqlite_savepoints(sqlite_engine) -> None:
    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT; take over
    # transaction control so begin_nested() behaves like it does on Postgres.
    @event.listens_for(sqlite_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(sqlite_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def make_engine(url: str, **kwargs):
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    new_engine = create_engine(url, future=True, **kwargs)
    if is_sqlite:
        _enable_sqlite_savepoints(new_engine)
    return new_engine


def make_session_factory(bind):
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


if settings.DATABASE_URL:
    engine = make_engine(settings.DATABASE_URL)
    SessionLocal = make_session_factory(engine)


def get_db():
    if not SessionLocal:
        raise DatabaseNotConfigured("DB not configured (DATABASE_URL missing)")
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
