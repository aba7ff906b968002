"""
Tests for the SQLAlchemy contact store
"""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from models.contact import LinkPrecedence
from services.contact_store import SqlAlchemyContactStore
from services.errors import ErrorKind, StoreError


@pytest.fixture
def seeded(seed_contact):
    """Two clusters, 1 <- 2 and 3 <- 4, created in the order 1, 4, 3, 2"""

    async def _seed():
        await seed_contact("a@x.io", "100", created_at=datetime(2023, 1, 1))
        await seed_contact("b@x.io", "100", linked_id=1, link_precedence="secondary", created_at=datetime(2023, 1, 5))
        await seed_contact("c@x.io", "300", created_at=datetime(2023, 1, 3))
        await seed_contact("a@x.io", "400", linked_id=3, link_precedence="secondary", created_at=datetime(2023, 1, 2))

    return _seed


async def test_insert_assigns_id_and_timestamps(db_manager):
    async with db_manager.transaction() as session:
        store = SqlAlchemyContactStore(session)
        contact_id = await store.insert_contact("a@x.io", None, None, LinkPrecedence.PRIMARY)
        rows = await store.fetch_cluster_by_primary_id(contact_id)

    assert contact_id == 1
    assert len(rows) == 1
    assert rows[0].is_primary()
    assert rows[0].created_at is not None
    assert rows[0].created_at == rows[0].updated_at
    assert rows[0].deleted_at is None


async def test_fetch_by_email_or_phone_orders_by_creation(db_manager, seeded):
    await seeded()
    async with db_manager.transaction() as session:
        store = SqlAlchemyContactStore(session)

        by_email = await store.fetch_by_email_or_phone("a@x.io", None)
        by_either = await store.fetch_by_email_or_phone("c@x.io", "100")
        nothing = await store.fetch_by_email_or_phone(None, None)

    assert [c.id for c in by_email] == [1, 4]
    assert [c.id for c in by_either] == [1, 3, 2]
    assert nothing == []


async def test_fetch_by_ids_or_linked_ids(db_manager, seeded):
    await seeded()
    async with db_manager.transaction() as session:
        store = SqlAlchemyContactStore(session)

        rows = await store.fetch_by_ids_or_linked_ids({1, 3})
        empty = await store.fetch_by_ids_or_linked_ids(set())

    assert [c.id for c in rows] == [1, 4, 3, 2]
    assert empty == []


async def test_fetch_cluster_by_primary_id(db_manager, seeded):
    await seeded()
    async with db_manager.transaction() as session:
        rows = await SqlAlchemyContactStore(session).fetch_cluster_by_primary_id(3)

    assert [c.id for c in rows] == [4, 3]


async def test_update_and_relink_are_visible_in_later_reads(db_manager, seeded):
    await seeded()
    async with db_manager.transaction() as session:
        store = SqlAlchemyContactStore(session)
        before = await store.fetch_cluster_by_primary_id(1)

        await store.update_precedence_and_link({3}, LinkPrecedence.SECONDARY, 1)
        await store.relink_secondaries({3}, 1)
        after = await store.fetch_cluster_by_primary_id(1)

    assert [c.id for c in before] == [1, 2]
    assert [c.id for c in after] == [1, 4, 3, 2]
    demoted = next(c for c in after if c.id == 3)
    assert demoted.is_secondary()
    assert demoted.linked_id == 1
    assert demoted.updated_at > datetime(2023, 1, 3)


async def test_empty_updates_are_no_ops(db_manager, seeded):
    await seeded()
    async with db_manager.transaction() as session:
        store = SqlAlchemyContactStore(session)
        await store.update_precedence_and_link(set(), LinkPrecedence.SECONDARY, 1)
        await store.relink_secondaries([], 1)
        rows = await store.fetch_all()

    assert [c.link_precedence for c in rows] == ["primary", "secondary", "primary", "secondary"]


async def test_lock_identity_is_a_no_op_outside_postgres(db_manager):
    async with db_manager.transaction() as session:
        store = SqlAlchemyContactStore(session)
        assert store.dialect_name == "sqlite"
        await store.lock_identity(["email:a@x.io"])


async def test_fetch_all_orders_by_id(db_manager, seeded):
    await seeded()
    async with db_manager.get_session() as session:
        rows = await SqlAlchemyContactStore(session).fetch_all()

    assert [c.id for c in rows] == [1, 2, 3, 4]


async def test_database_errors_become_store_errors():
    session = MagicMock()
    session.execute = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("connection lost")))
    store = SqlAlchemyContactStore(session)

    with pytest.raises(StoreError) as exc_info:
        await store.fetch_by_email_or_phone("a@x.io", None)

    assert exc_info.value.kind is ErrorKind.STORE
    assert isinstance(exc_info.value.__cause__, OperationalError)


async def test_advisory_locks_taken_on_postgres():
    session = MagicMock()
    session.get_bind.return_value.dialect.name = "postgresql"
    session.execute = AsyncMock()
    store = SqlAlchemyContactStore(session)

    await store.lock_identity(["phone:2", "email:a", "phone:2"])

    keys = [call.args[1]["key"] for call in session.execute.await_args_list]
    assert keys == ["email:a", "phone:2"]
