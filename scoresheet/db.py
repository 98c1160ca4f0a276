from typing import Iterator

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine


def build_engine(database_url: str, echo: bool = False) -> Engine:
    connect_args = {}
    kwargs = {}
    if database_url.startswith("sqlite"):
        # FastAPI runs sync handlers in a thread pool
        connect_args["check_same_thread"] = False
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, echo=echo, connect_args=connect_args, **kwargs)


def init_db(engine: Engine) -> None:
    # Importing the models registers their tables on the metadata
    from scoresheet import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session(request: Request) -> Iterator[Session]:
    with Session(request.app.state.engine) as session:
        yield session
