from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from shop_sales.core.config import settings


class Base(DeclarativeBase):
    pass


def _serialize_sqlite_writers(engine: Engine) -> None:
    # pysqlite defers BEGIN until the first write, so two sessions could both
    # read the same stock value. Taking the write lock at BEGIN serializes them.
    # Every transaction, read-only ones included, holds that lock until it ends,
    # so callers must commit, roll back or close sessions they only read with.
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(connection):
        connection.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str, *, echo: bool = False) -> Engine:
    is_sqlite = database_url.startswith("sqlite")

    if is_sqlite:
        connect_args = {
            "check_same_thread": False,
            "timeout": settings.sqlite_busy_timeout_seconds,
        }
    else:
        connect_args = {
            "sslmode": settings.database_sslmode,
            "options": f"-c lock_timeout={settings.lock_timeout_ms}",
        }

    engine = create_engine(
        database_url,
        connect_args=connect_args,
        echo=echo,
        pool_pre_ping=not is_sqlite,
        pool_recycle=1800 if not is_sqlite else -1,
    )
    if is_sqlite:
        _serialize_sqlite_writers(engine)
    return engine


def build_session_factory(bind: Engine) -> sessionmaker:
    # Committed rows stay readable after commit without opening a new
    # transaction (and, on SQLite, a new write lock).
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, expire_on_commit=False)


engine = build_engine(settings.database_url, echo=settings.sql_echo)

SessionLocal = build_session_factory(engine)
