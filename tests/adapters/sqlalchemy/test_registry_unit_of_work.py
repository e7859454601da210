from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine

from homesync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyRegistryUnitOfWork,
    StartupError,
    build_session_factory,
    is_started,
    shutdown,
    startup,
)
from homesync.domain.model import EntitySource
from tests.support.registry import make_entity

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def test_registry_unit_of_work_requires_startup() -> None:
    assert not is_started()
    with pytest.raises(StartupError):
        SqlAlchemyRegistryUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:", future=True)
    engine_b = create_engine("sqlite+pysqlite:///:memory:", future=True)

    startup(engine=engine_a, force=True)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert SqlAlchemyRegistryUnitOfWork().session_factory.kw["bind"] is engine_b


def test_commit_persists_entities(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    entity = make_entity("light.kitchen", source=EntitySource.EXTERNAL, name="Kitchen")

    with SqlAlchemyRegistryUnitOfWork() as uow:
        uow.repositories.entities.add(entity)
        uow.commit()

    with SqlAlchemyRegistryUnitOfWork() as uow:
        stored = uow.repositories.entities.get_by_external_id("light.kitchen")
        assert stored is not None
        assert stored.name == "Kitchen"


def test_exception_rolls_back_pending_changes(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with pytest.raises(RuntimeError), SqlAlchemyRegistryUnitOfWork() as uow:
        uow.repositories.entities.add(make_entity("light.porch"))
        raise RuntimeError("boom")

    with SqlAlchemyRegistryUnitOfWork() as uow:
        assert uow.repositories.entities.get_by_entity_id("light.porch") is None


def test_explicit_session_factory_does_not_need_startup(sqlite_engine: Engine) -> None:
    factory = build_session_factory(sqlite_engine)

    with SqlAlchemyRegistryUnitOfWork(factory) as uow:
        uow.repositories.entities.add(make_entity("light.desk"))
        uow.commit()

    with SqlAlchemyRegistryUnitOfWork(factory) as uow:
        assert uow.repositories.entities.get_by_entity_id("light.desk") is not None


def test_repositories_unavailable_outside_context(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    uow = SqlAlchemyRegistryUnitOfWork()

    with pytest.raises(StartupError):
        _ = uow.repositories
