"""
Test configuration and shared fixtures

Tests run against a real async SQLAlchemy engine on an in-memory SQLite
database, created fresh for every test.
"""

import os
from datetime import datetime
from typing import AsyncGenerator

# Set test environment variables before importing the app
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("DEBUG", "False")
os.environ.setdefault("AUTO_CREATE_TABLES", "False")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from database import DatabaseManager, get_db_manager
from models import Contact
from services.identity_service import IdentityService
from services.locks import KeyedLock

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def db_manager() -> AsyncGenerator[DatabaseManager, None]:
    manager = DatabaseManager(TEST_DATABASE_URL)
    await manager.create_tables()
    yield manager
    await manager.dispose()


@pytest.fixture
def identity_service(db_manager) -> IdentityService:
    return IdentityService(db_manager, locks=KeyedLock())


@pytest.fixture
def seed_contact(db_manager):
    """
    Insert a contact row directly, bypassing reconciliation
    Lets tests build pre-existing clusters with chosen timestamps.
    """

    async def _seed(
        email=None,
        phone_number=None,
        linked_id=None,
        link_precedence="primary",
        created_at=None,
    ) -> int:
        created_at = created_at or datetime(2023, 4, 1, 0, 0, 0)
        async with db_manager.transaction() as session:
            contact = Contact(
                email=email,
                phone_number=phone_number,
                linked_id=linked_id,
                link_precedence=link_precedence,
                created_at=created_at,
                updated_at=created_at,
            )
            session.add(contact)
            await session.flush()
            return contact.id

    return _seed


@pytest.fixture
def all_contacts(identity_service):
    """Every stored row, ordered by id"""

    async def _all():
        return await identity_service.list_contacts()

    return _all


@pytest_asyncio.fixture
async def async_client(db_manager) -> AsyncGenerator[AsyncClient, None]:
    from main import app

    app.dependency_overrides[get_db_manager] = lambda: db_manager
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
