from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, TypeVar

from sqlalchemy import Engine, Text, create_engine, delete, make_url, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from texel_plane.base import Project, Texel, TexelDriver
from texel_plane.errors import DriverError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Base(DeclarativeBase):
    pass


class ChangeModel(Base):
    __tablename__ = "changes"
    prefix: Mapped[str] = mapped_column(primary_key=True)
    project_id: Mapped[str] = mapped_column(primary_key=True)
    domain: Mapped[str] = mapped_column(primary_key=True)
    key: Mapped[str] = mapped_column(primary_key=True)
    locale: Mapped[str] = mapped_column(primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)


class ChangeDriver(TexelDriver):
    """
    Stores pending changes that are not yet committed to another driver.

    Records are scoped by ``prefix`` (the origin, e.g. a driver type and
    account) and project id. Only real values are stored, a tombstone
    deletes the pending record it identifies.

    The driver is layered by the caller: read the base driver and this
    driver separately and merge with :func:`texel_plane.merge.merge_texels`.

    Sessions run in a worker thread, except for in-memory SQLite databases
    which only live on the connection that created them. An ``engine``
    passed in is owned by the driver and disposed by :meth:`aclose`.
    """

    def __init__(
        self,
        session_maker: Callable[[], Session],
        prefix: str,
        engine: Engine | None = None,
    ) -> None:
        self.session_maker = session_maker
        self.prefix = prefix
        self.engine = engine

        bind = engine if engine is not None else getattr(session_maker, "kw", {}).get("bind")
        self._threaded = isinstance(bind, Engine) and not _is_memory(bind)

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("ChangeDriver(...)")
        else:
            with p.group(4, "ChangeDriver(", ")"):
                p.breakable()
                p.text(f"prefix='{self.prefix}',")
                p.breakable()

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        if self._threaded:
            return await asyncio.to_thread(fn, *args)
        return fn(*args)

    async def aclose(self) -> None:
        if self.engine is not None:
            self.engine.dispose()

    async def project(self, id: str) -> Project:
        return Project(id=id, name="change", leaf=True)

    async def projects(self, parent: str | None = None) -> list[Project]:
        return []

    async def list(self, id: str) -> list[Texel]:
        try:
            return await self._run(self._list, id)
        except SQLAlchemyError as e:
            raise DriverError("Could not read pending changes", "list", id) from e

    def _list(self, id: str) -> list[Texel]:
        stmt = select(ChangeModel).where(
            ChangeModel.prefix == self.prefix,
            ChangeModel.project_id == id,
        )
        with self.session_maker() as session:
            items = session.execute(stmt).scalars().all()
            return [Texel(item.domain, item.key, item.locale, item.value) for item in items]

    async def update(self, id: str, changes: list[Texel]) -> None:
        try:
            await self._run(self._update, id, changes)
        except SQLAlchemyError as e:
            raise DriverError("Could not store pending changes", "update", id) from e

        logger.debug("Stored %d pending changes for %s", len(changes), id)

    def _update(self, id: str, changes: list[Texel]) -> None:
        with self.session_maker() as session, session.begin():
            for texel in changes:
                if texel.is_tombstone:
                    session.execute(
                        delete(ChangeModel).where(
                            ChangeModel.prefix == self.prefix,
                            ChangeModel.project_id == id,
                            ChangeModel.domain == texel.domain,
                            ChangeModel.key == texel.key,
                            ChangeModel.locale == texel.locale,
                        )
                    )
                else:
                    session.merge(
                        ChangeModel(
                            prefix=self.prefix,
                            project_id=id,
                            domain=texel.domain,
                            key=texel.key,
                            locale=texel.locale,
                            value=texel.value,
                        )
                    )

    async def clear(self, id: str) -> None:
        """Drop all pending changes of a project."""
        try:
            await self._run(self._clear, id)
        except SQLAlchemyError as e:
            raise DriverError("Could not clear pending changes", "clear", id) from e

    def _clear(self, id: str) -> None:
        with self.session_maker() as session, session.begin():
            session.execute(
                delete(ChangeModel).where(
                    ChangeModel.prefix == self.prefix,
                    ChangeModel.project_id == id,
                )
            )


def _is_memory(engine: Engine) -> bool:
    url = engine.url
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def create_change_store(url: str, **engine_kwargs: Any) -> sessionmaker[Session]:
    """Create the engine and tables of a pending change store."""
    database = make_url(url).database
    if url.startswith("sqlite") and database and database != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(url, **engine_kwargs)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)


def create_change_driver(url: str, prefix: str, **engine_kwargs: Any) -> ChangeDriver:
    """Create a store at ``url`` and a driver that owns its engine."""
    session_maker = create_change_store(url, **engine_kwargs)
    return ChangeDriver(session_maker, prefix, engine=session_maker.kw["bind"])
