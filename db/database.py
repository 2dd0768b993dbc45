from __future__ import annotations

from collections.abc import Generator, Iterator
from contextlib import contextmanager

from fastapi import Request
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine


class Database:
    """Owns the engine (and its connection pool) for the lifetime of the app."""

    def __init__(self, database_url: str):
        self.url = database_url
        engine_kwargs: dict = {"pool_pre_ping": True}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                # every session must see the same in-memory database
                engine_kwargs["poolclass"] = StaticPool
        self.engine = create_engine(database_url, **engine_kwargs)

    @contextmanager
    def session(self) -> Iterator[Session]:
        with Session(self.engine) as session:
            yield session

    def init_db(self) -> None:
        # imported for metadata side effects
        from db import models  # noqa: F401

        SQLModel.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


# Dependency to get DB session in routes
def get_session(request: Request) -> Generator[Session, None, None]:
    database: Database = request.app.state.database
    with database.session() as session:
        yield session
