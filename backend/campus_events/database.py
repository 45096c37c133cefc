from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # TestClient and uvicorn's threadpool hand sessions across threads.
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db(request: Request) -> Iterator[Session]:
    """Yield a session from the factory owned by the running application."""
    session_factory: sessionmaker = request.app.state.session_factory
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
