"""
Identity Service - Core business logic for identity reconciliation
Handles contact matching, cluster merging, primary/secondary relationships,
and response building. Every reconciliation runs inside one transaction.
"""

import logging
from typing import TYPE_CHECKING, Iterable, List, Optional, Tuple

from models.contact import Contact, LinkPrecedence
from schemas.identify import ContactResponse, IdentifyRequest, IdentifyResponse
from .contact_store import ContactStore, SqlAlchemyContactStore
from .errors import InvariantViolation
from .locks import KeyedLock
from .normalizer import NormalizedIdentity, normalize_identity

if TYPE_CHECKING:
    from database import DatabaseManager

logger = logging.getLogger(__name__)


def _creation_order(contact: Contact):
    return (contact.created_at, contact.id)


def select_canonical_primary(contacts: Iterable[Contact]) -> Optional[Contact]:
    """Earliest-created primary wins; equal timestamps fall back to the lowest id"""
    primaries = [c for c in contacts if c.is_primary()]
    if not primaries:
        return None
    return min(primaries, key=_creation_order)


def _unique_in_order(values: Iterable[Optional[str]]) -> List[str]:
    seen = set()
    out = []
    for value in values:
        if not value or value in seen:
            continue
        seen.add(value)
        out.append(value)
    return out


def project_cluster(primary_id: int, cluster: List[Contact]) -> ContactResponse:
    """
    Build the externally visible view of a cluster

    The primary's own email/phone come first, followed by the secondaries'
    values in creation order, with nulls and repeats removed.
    """
    primary = next((c for c in cluster if c.id == primary_id), None)
    if primary is None:
        raise InvariantViolation(
            f"Primary contact {primary_id} not found in its own cluster",
            details={"primary_id": primary_id, "cluster_ids": [c.id for c in cluster]}
        )

    secondaries = sorted((c for c in cluster if c.id != primary_id), key=_creation_order)

    return ContactResponse(
        primaryContactId=primary.id,
        emails=_unique_in_order([primary.email] + [c.email for c in secondaries]),
        phoneNumbers=_unique_in_order([primary.phone_number] + [c.phone_number for c in secondaries]),
        secondaryContactIds=[c.id for c in secondaries]
    )


class IdentityReconciler:
    """
    Reconciliation algorithm over an abstract ContactStore

    Holds no state; the caller supplies the store and is responsible for
    running each call inside a single transaction.
    """

    async def reconcile(self, store: ContactStore, identity: NormalizedIdentity) -> ContactResponse:
        """
        Algorithm:
        1. Find contacts matching the email or phone
        2. No match -> create a new primary contact
        3. Match -> expand to the implicated clusters and pick the canonical primary
        4. Demote every other primary and re-link its secondaries
        5. Insert a secondary when the request carries an unknown email or phone
        6. Return the consolidated cluster
        """
        candidates = await self.find_candidates(store, identity)

        if not candidates:
            primary_id = await store.insert_contact(
                identity.email, identity.phone_number, None, LinkPrecedence.PRIMARY
            )
            logger.info(f"Created new primary contact {primary_id}")
            cluster = await store.fetch_cluster_by_primary_id(primary_id)
            return project_cluster(primary_id, cluster)

        canonical, rows = await self.resolve_cluster(store, candidates)
        await self.merge_clusters(store, canonical, rows)
        cluster = await self.append_new_facts(store, canonical, identity)
        return project_cluster(canonical.id, cluster)

    async def find_candidates(self, store: ContactStore, identity: NormalizedIdentity) -> List[Contact]:
        return await store.fetch_by_email_or_phone(identity.email, identity.phone_number)

    async def resolve_cluster(
        self,
        store: ContactStore,
        candidates: List[Contact]
    ) -> Tuple[Contact, List[Contact]]:
        """
        Expand matched rows to every primary they implicate plus those primaries' secondaries

        A secondary pointing outside the implicated set means its parent was
        demoted (a stale chain or a merge committed meanwhile); the parent is
        added and the set is fetched again until nothing new turns up.
        """
        implicated = {c.primary_id() for c in candidates if c.primary_id() is not None}

        while True:
            rows = await store.fetch_by_ids_or_linked_ids(implicated)
            missing = {
                c.linked_id for c in rows
                if c.is_secondary() and c.linked_id is not None and c.linked_id not in implicated
            }
            if not missing:
                break
            logger.warning(f"Following stale links to contacts {sorted(missing)}")
            implicated |= missing

        canonical = select_canonical_primary(rows)
        if canonical is None:
            raise InvariantViolation(
                "No primary contact among matched contacts",
                details={"contact_ids": [c.id for c in rows]}
            )
        return canonical, rows

    async def merge_clusters(self, store: ContactStore, canonical: Contact, rows: List[Contact]) -> None:
        """Fold every other primary (and its secondaries) under the canonical primary"""
        demoted = {c.id for c in rows if c.is_primary() and c.id != canonical.id}
        stale_parents = {
            c.linked_id for c in rows
            if c.is_secondary() and c.linked_id is not None and c.linked_id != canonical.id
        }
        if not demoted and not stale_parents:
            return

        logger.info(f"Merging contacts {sorted(demoted)} into primary {canonical.id}")
        if demoted:
            await store.update_precedence_and_link(demoted, LinkPrecedence.SECONDARY, canonical.id)
        await store.relink_secondaries(demoted | stale_parents, canonical.id)

    async def append_new_facts(
        self,
        store: ContactStore,
        canonical: Contact,
        identity: NormalizedIdentity
    ) -> List[Contact]:
        """Insert a secondary if the request carries an email or phone the cluster lacks"""
        cluster = await store.fetch_cluster_by_primary_id(canonical.id)

        known_emails = {c.email for c in cluster if c.email}
        known_phones = {c.phone_number for c in cluster if c.phone_number}
        has_new_email = identity.email is not None and identity.email not in known_emails
        has_new_phone = identity.phone_number is not None and identity.phone_number not in known_phones

        if not (has_new_email or has_new_phone):
            return cluster

        secondary_id = await store.insert_contact(
            identity.email, identity.phone_number, canonical.id, LinkPrecedence.SECONDARY
        )
        logger.info(f"Created secondary contact {secondary_id} linked to {canonical.id}")
        return await store.fetch_cluster_by_primary_id(canonical.id)


# Shared by every IdentityService in the process
identity_locks = KeyedLock()


class IdentityService:
    """
    Runs reconciliations against a database

    Each call holds the in-process locks for its email/phone and executes the
    whole read-modify-write sequence in one database transaction.
    """

    def __init__(
        self,
        db_manager: "DatabaseManager",
        reconciler: Optional[IdentityReconciler] = None,
        locks: Optional[KeyedLock] = None
    ):
        self.db_manager = db_manager
        self.reconciler = reconciler or IdentityReconciler()
        self.locks = locks or identity_locks

    async def identify_contact(self, request: IdentifyRequest) -> IdentifyResponse:
        contact = await self.reconcile(request.email, request.phoneNumber)
        return IdentifyResponse(contact=contact)

    async def reconcile(self, email=None, phone_number=None) -> ContactResponse:
        """
        Reconcile one email/phone pair

        Raises:
            ValidationError: both values are absent after normalization
            StoreError: a database call failed; nothing was committed
            InvariantViolation: the stored clusters are inconsistent
        """
        identity = normalize_identity(email, phone_number)
        keys = identity.lock_keys()

        async with self.locks.acquire(keys):
            async with self.db_manager.transaction() as session:
                store = SqlAlchemyContactStore(session)
                await store.lock_identity(keys)
                return await self.reconciler.reconcile(store, identity)

    async def list_contacts(self) -> List[Contact]:
        async with self.db_manager.get_session() as session:
            return await SqlAlchemyContactStore(session).fetch_all()
