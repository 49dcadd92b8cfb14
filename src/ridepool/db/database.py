"""Database engine initialization and connection management."""

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import sessionmaker

from .schema import Base

# Connection execution option selecting the SQLite BEGIN flavour
BEGIN_MODE_OPTION = "sqlite_begin_mode"

BUSY_TIMEOUT_SECONDS = 5.0


def _install_sqlite_transaction_hooks(engine: Engine) -> None:
    """Let SQLAlchemy emit BEGIN itself so a unit of work can take the write lock up front.

    pysqlite defers BEGIN until the first DML statement, which lets two
    writers both read and then deadlock on lock promotion. Write units ask
    for ``BEGIN IMMEDIATE`` through ``BEGIN_MODE_OPTION`` and queue on the
    busy timeout instead.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        # WAL keeps readers unblocked while one writer holds the lock
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn: Connection) -> None:
        mode = conn.get_execution_options().get(BEGIN_MODE_OPTION, "DEFERRED")
        conn.exec_driver_sql(f"BEGIN {mode}")


def init_database(db_path: str) -> sessionmaker[Any]:
    """Initialize database and return session factory."""
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={"check_same_thread": False, "timeout": BUSY_TIMEOUT_SECONDS},
    )
    _install_sqlite_transaction_hooks(engine)
    Base.metadata.create_all(engine)

    return sessionmaker(bind=engine, expire_on_commit=False)
