import os
from typing import Optional

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

DEFAULT_DATABASE_URL = "sqlite:///./lostfound.db"


def build_engine(database_url: Optional[str] = None) -> Engine:
    """
    Create the store client. Called once per process by the app factory;
    the engine is then shared through ``app.state``.
    """
    url = database_url or os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}

        # in-memory databases only live as long as their single connection
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool

        return create_engine(url, **kwargs)

    return create_engine(url, pool_pre_ping=True, pool_recycle=300)


def init_db(engine: Engine):
    # table models must be imported before create_all
    from lostfound.models import claim, item, notification  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session(request: Request):
    with Session(request.app.state.engine) as session:
        yield session
