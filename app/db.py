from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from app import config

Base = declarative_base()


def create_db_engine(database_url: str | None = None, *, statement_timeout_ms: int | None = None) -> Engine:
    url = make_url(database_url or config.DATABASE_URL)
    if statement_timeout_ms is None:
        statement_timeout_ms = config.DB_STATEMENT_TIMEOUT_MS

    connect_args = {}
    if url.get_backend_name() == "postgresql":
        options = "-c timezone=utc"
        if statement_timeout_ms:
            options += f" -c statement_timeout={int(statement_timeout_ms)}"
        connect_args = {"options": options}
    elif url.get_backend_name() == "sqlite":
        connect_args = {"check_same_thread": False}

    return create_engine(url, connect_args=connect_args)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False)


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
