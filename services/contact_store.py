"""
Contact Store - persistence interface used by the reconciliation core
Defines the abstract store operations and their SQLAlchemy implementation
"""

import functools
import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from sqlalchemy import or_, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.base import utcnow
from models.contact import Contact, LinkPrecedence
from .errors import StoreError

logger = logging.getLogger(__name__)


class ContactStore(ABC):
    """
    Operations the reconciliation core performs against the contacts table
    Every fetch returns rows ordered by (created_at, id) unless stated otherwise.
    """

    async def lock_identity(self, keys: Iterable[str]) -> None:
        """Serialize this unit of work against others sharing any of the keys"""
        return None

    @abstractmethod
    async def insert_contact(
        self,
        email: Optional[str],
        phone_number: Optional[str],
        linked_id: Optional[int],
        precedence: LinkPrecedence
    ) -> int:
        """Insert a contact and return its new id"""
        ...

    @abstractmethod
    async def fetch_by_email_or_phone(
        self,
        email: Optional[str],
        phone_number: Optional[str]
    ) -> List[Contact]:
        """Contacts whose email or phone equals one of the given (present) values"""
        ...

    @abstractmethod
    async def fetch_by_ids_or_linked_ids(self, ids: Iterable[int]) -> List[Contact]:
        """Contacts that are one of the ids, or are linked to one of them"""
        ...

    @abstractmethod
    async def fetch_cluster_by_primary_id(self, primary_id: int) -> List[Contact]:
        """The primary and every secondary linked to it"""
        ...

    @abstractmethod
    async def update_precedence_and_link(
        self,
        ids: Iterable[int],
        precedence: LinkPrecedence,
        linked_id: Optional[int]
    ) -> None:
        ...

    @abstractmethod
    async def relink_secondaries(self, old_linked_ids: Iterable[int], new_linked_id: int) -> None:
        ...

    @abstractmethod
    async def fetch_all(self) -> List[Contact]:
        """Every contact, ordered by id"""
        ...


def _store_call(method):
    """Report SQLAlchemy failures as StoreError"""

    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except SQLAlchemyError as e:
            logger.error(f"Contact store operation {method.__name__} failed: {e}")
            raise StoreError(f"Contact store operation {method.__name__} failed") from e

    return wrapper


class SqlAlchemyContactStore(ContactStore):
    """
    ContactStore bound to one AsyncSession

    The caller owns the session and its transaction. Reads that decide
    mutations take row locks (SELECT ... FOR UPDATE) on dialects that have them.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    async def _fetch(self, query, lock: bool = False) -> List[Contact]:
        query = query.execution_options(populate_existing=True)
        if lock:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return list(result.scalars().all())

    def _ordered(self, *criteria):
        return select(Contact).where(*criteria).order_by(Contact.created_at, Contact.id)

    @_store_call
    async def lock_identity(self, keys: Iterable[str]) -> None:
        if self.dialect_name != "postgresql":
            return
        # Transaction-scoped advisory locks; released on commit or rollback
        for key in sorted(set(keys)):
            await self.session.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
                {"key": key}
            )

    @_store_call
    async def insert_contact(
        self,
        email: Optional[str],
        phone_number: Optional[str],
        linked_id: Optional[int],
        precedence: LinkPrecedence
    ) -> int:
        now = utcnow()
        contact = Contact(
            email=email,
            phone_number=phone_number,
            linked_id=linked_id,
            link_precedence=LinkPrecedence(precedence).value,
            created_at=now,
            updated_at=now
        )
        self.session.add(contact)
        await self.session.flush()
        return contact.id

    @_store_call
    async def fetch_by_email_or_phone(
        self,
        email: Optional[str],
        phone_number: Optional[str]
    ) -> List[Contact]:
        conditions = []
        if email is not None:
            conditions.append(Contact.email == email)
        if phone_number is not None:
            conditions.append(Contact.phone_number == phone_number)

        if not conditions:
            return []

        return await self._fetch(self._ordered(or_(*conditions)), lock=True)

    @_store_call
    async def fetch_by_ids_or_linked_ids(self, ids: Iterable[int]) -> List[Contact]:
        ids = sorted(set(ids))
        if not ids:
            return []
        query = self._ordered(or_(Contact.id.in_(ids), Contact.linked_id.in_(ids)))
        return await self._fetch(query, lock=True)

    @_store_call
    async def fetch_cluster_by_primary_id(self, primary_id: int) -> List[Contact]:
        query = self._ordered(or_(Contact.id == primary_id, Contact.linked_id == primary_id))
        return await self._fetch(query)

    @_store_call
    async def update_precedence_and_link(
        self,
        ids: Iterable[int],
        precedence: LinkPrecedence,
        linked_id: Optional[int]
    ) -> None:
        ids = sorted(set(ids))
        if not ids:
            return
        statement = (
            update(Contact)
            .where(Contact.id.in_(ids))
            .values(
                link_precedence=LinkPrecedence(precedence).value,
                linked_id=linked_id,
                updated_at=utcnow()
            )
            .execution_options(synchronize_session="fetch")
        )
        await self.session.execute(statement)

    @_store_call
    async def relink_secondaries(self, old_linked_ids: Iterable[int], new_linked_id: int) -> None:
        old_linked_ids = sorted(set(old_linked_ids))
        if not old_linked_ids:
            return
        statement = (
            update(Contact)
            .where(Contact.linked_id.in_(old_linked_ids))
            .values(linked_id=new_linked_id, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        await self.session.execute(statement)

    @_store_call
    async def fetch_all(self) -> List[Contact]:
        return await self._fetch(select(Contact).order_by(Contact.id))
