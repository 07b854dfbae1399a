# hospital_ledger/db/session.py
from contextlib import contextmanager
from typing import Dict, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from hospital_ledger.core.config import settings

_engines: Dict[str, Engine] = {}


def make_engine(db_uri: str, **kwargs) -> Engine:
    """
    Build an engine for the given URI.

    SQLite gets the pysqlite BEGIN hooks so that SAVEPOINT (nested units)
    behaves like it does on MySQL.
    """
    if db_uri.startswith("sqlite"):
        eng = create_engine(db_uri, echo=settings.SQL_ECHO, future=True, **kwargs)

        @event.listens_for(eng, "connect")
        def _sqlite_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cur = dbapi_connection.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

        @event.listens_for(eng, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN")

        return eng

    return create_engine(
        db_uri,
        pool_pre_ping=True,
        pool_recycle=280,
        pool_size=10,
        max_overflow=20,
        echo=settings.SQL_ECHO,
        future=True,
        **kwargs,
    )


def get_or_create_engine(db_uri: str) -> Engine:
    eng = _engines.get(db_uri)
    if eng is None:
        eng = make_engine(db_uri)
        _engines[db_uri] = eng
    return eng


def make_session_factory(eng: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=eng,
        future=True,
    )


engine = get_or_create_engine(settings.SQLALCHEMY_DATABASE_URI)
SessionLocal = make_session_factory(engine)


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    One all-or-nothing unit of work.

    Opens a transaction, or a SAVEPOINT when the session is already inside
    one, so an orchestrator failure never leaves partial ledger writes behind
    even when the caller batches several operations.
    """
    if db.in_transaction():
        with db.begin_nested():
            yield db
    else:
        with db.begin():
            yield db
