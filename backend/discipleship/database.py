"""Database engine and helpers.

`Database` owns the SQLModel/SQLAlchemy engine for one application
instance. It is constructed explicitly by `create_app` (or a script),
stored on `app.state.db`, and disposed when the application shuts down.
The default URL points at a local SQLite file next to the package;
`DATABASE_URL` overrides it.
"""

import logging
from typing import Iterator

from fastapi import Request
from sqlmodel import Session, SQLModel, create_engine

from . import models  # noqa: F401  (register tables on SQLModel.metadata)
from .config import Settings

logger = logging.getLogger("discipleship.database")


class Database:
    """A configured engine plus session factory."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        self.engine = create_engine(url, echo=echo, connect_args=connect_args)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)

    def create_all(self) -> None:
        """Create database tables using SQLModel metadata.

        Intended for local development, tests and scripts; production
        deployments should manage schema with a migration tool instead.
        """
        SQLModel.metadata.create_all(self.engine)

    def session(self) -> Session:
        return Session(self.engine)

    def dispose(self) -> None:
        logger.info("disposing engine for %s", self.engine.url.render_as_string(hide_password=True))
        self.engine.dispose()


def get_session(request: Request) -> Iterator[Session]:
    """Yield a database `Session` for FastAPI dependency injection.

    The session comes from the `Database` bound to the running app and is
    closed when the request scope finishes.
    """
    db: Database = request.app.state.db
    with db.session() as session:
        yield session
