from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker
from closepro.core.config import settings


def _use_sqlalchemy_transactions(engine: Engine) -> None:
    """Let SQLAlchemy emit BEGIN itself so SAVEPOINT works on pysqlite."""

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str) -> Engine:
    connect_args = {}
    backend = make_url(database_url).get_backend_name()
    if backend.startswith("postgresql"):
        connect_args["options"] = "-c timezone=utc"
    elif backend == "sqlite":
        # Local/test database; requests may hop threads under the ASGI server.
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = 30

    engine = create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)
    if backend == "sqlite":
        _use_sqlalchemy_transactions(engine)
    return engine


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
