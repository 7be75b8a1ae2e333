from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base

from . import config


def make_engine(url: str, **kwargs):
    # For SQLite, enable check_same_thread=False for multithreading in FastAPI
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    connect_args.update(kwargs.pop("connect_args", {}))
    engine = create_engine(url, connect_args=connect_args, future=True, **kwargs)

    # Ensure SQLite enforces foreign keys (order_items.sweet_id ON DELETE SET NULL)
    if url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def make_sessionmaker(bind):
    return sessionmaker(autocommit=False, autoflush=False, bind=bind, future=True)


engine = make_engine(config.get_settings().database_url)
SessionLocal = make_sessionmaker(engine)
Base = declarative_base()
