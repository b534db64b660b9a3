import threading
from pathlib import Path

import pytest
from sqlalchemy import event, func, select

from texel_plane.base import Project, Texel
from texel_plane.errors import DriverError
from texel_plane.impl.change import (
    ChangeDriver,
    ChangeModel,
    create_change_driver,
    create_change_store,
)

DOMAIN = "common.json.dir"


def count_records(session_maker) -> int:
    with session_maker() as session:
        return session.execute(select(func.count()).select_from(ChangeModel)).scalar_one()


async def test_update_and_list(change_driver: ChangeDriver):
    await change_driver.update(
        "p1", [Texel(DOMAIN, "a", "en", "A"), Texel(DOMAIN, "b", "de", "B")]
    )

    assert set(await change_driver.list("p1")) == {
        Texel(DOMAIN, "a", "en", "A"),
        Texel(DOMAIN, "b", "de", "B"),
    }


async def test_update_replaces_value(change_driver: ChangeDriver, change_store):
    await change_driver.update("p1", [Texel(DOMAIN, "a", "en", "first")])
    await change_driver.update("p1", [Texel(DOMAIN, "a", "en", "second")])

    assert await change_driver.list("p1") == [Texel(DOMAIN, "a", "en", "second")]
    assert count_records(change_store) == 1


async def test_tombstone_leaves_no_record(change_driver: ChangeDriver, change_store):
    await change_driver.update("p1", [Texel(DOMAIN, "a", "en", "value")])
    await change_driver.update("p1", [Texel(DOMAIN, "a", "en", None)])

    assert await change_driver.list("p1") == []
    assert count_records(change_store) == 0


async def test_tombstone_without_record(change_driver: ChangeDriver):
    await change_driver.update("p1", [Texel(DOMAIN, "a", "en", None)])
    assert await change_driver.list("p1") == []


async def test_records_are_scoped(change_store):
    first = ChangeDriver(change_store, "origin-a")
    second = ChangeDriver(change_store, "origin-b")

    await first.update("p1", [Texel(DOMAIN, "a", "en", "a/p1")])
    await first.update("p2", [Texel(DOMAIN, "a", "en", "a/p2")])
    await second.update("p1", [Texel(DOMAIN, "a", "en", "b/p1")])

    assert await first.list("p1") == [Texel(DOMAIN, "a", "en", "a/p1")]
    assert await first.list("p2") == [Texel(DOMAIN, "a", "en", "a/p2")]
    assert await second.list("p1") == [Texel(DOMAIN, "a", "en", "b/p1")]
    assert await second.list("p2") == []


async def test_update_is_all_or_nothing(change_driver: ChangeDriver):
    changes = [
        Texel(DOMAIN, "a", "en", "stored"),
        Texel(DOMAIN, "b", "en", object()),  # not bindable
    ]

    with pytest.raises(DriverError):
        await change_driver.update("p1", changes)

    assert await change_driver.list("p1") == []


async def test_clear(change_store):
    driver = ChangeDriver(change_store, "test")
    other = ChangeDriver(change_store, "other")
    await driver.update("p1", [Texel(DOMAIN, "a", "en", "A"), Texel(DOMAIN, "b", "en", "B")])
    await driver.update("p2", [Texel(DOMAIN, "a", "en", "A")])
    await other.update("p1", [Texel(DOMAIN, "a", "en", "A")])

    await driver.clear("p1")

    assert await driver.list("p1") == []
    assert len(await driver.list("p2")) == 1
    assert len(await other.list("p1")) == 1


async def test_projects(change_driver: ChangeDriver):
    assert await change_driver.project("p1") == Project("p1", "change", leaf=True)
    assert await change_driver.projects() == []


def test_create_store_makes_database_directory(tmp_path: Path):
    database = tmp_path / "nested" / "dir" / "changes.db"
    create_change_store(f"sqlite:///{database}").kw["bind"].dispose()

    assert database.exists()


def record_threads(engine) -> list[int]:
    threads: list[int] = []

    @event.listens_for(engine, "before_cursor_execute")
    def record(conn, cursor, statement, parameters, context, executemany):
        threads.append(threading.get_ident())

    return threads


async def test_file_store_runs_off_the_event_loop(tmp_path: Path):
    driver = create_change_driver(f"sqlite:///{tmp_path / 'changes.db'}", "test")
    threads = record_threads(driver.engine)

    async with driver:
        await driver.update("p1", [Texel(DOMAIN, "a", "en", "A")])
        assert await driver.list("p1") == [Texel(DOMAIN, "a", "en", "A")]
        await driver.clear("p1")

    assert threads, "Statements should have been executed"
    assert threading.get_ident() not in threads


async def test_memory_store_stays_on_the_event_loop(change_driver: ChangeDriver, change_store):
    threads = record_threads(change_store.kw["bind"])

    await change_driver.update("p1", [Texel(DOMAIN, "a", "en", "A")])

    assert set(threads) == {threading.get_ident()}


async def test_aclose_disposes_owned_engine_only(change_store):
    engine = change_store.kw["bind"]
    disposed = []
    event.listen(engine, "engine_disposed", disposed.append)

    # 1. A driver over a shared session maker leaves the engine alone
    async with ChangeDriver(change_store, "shared"):
        pass
    assert disposed == []

    # 2. A driver given the engine owns it
    async with ChangeDriver(change_store, "owner", engine=engine):
        pass
    assert disposed == [engine]
