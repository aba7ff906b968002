"""
Business logic services for Identity Reconciliation API
Contains the identity reconciliation algorithm, its store interface,
and the error types it raises.
"""

from .errors import ErrorKind, ReconciliationError, ValidationError, StoreError, InvariantViolation
from .normalizer import NormalizedIdentity, normalize_email, normalize_phone, normalize_identity
from .contact_store import ContactStore, SqlAlchemyContactStore
from .identity_service import IdentityReconciler, IdentityService, project_cluster, select_canonical_primary

__all__ = [
    "ErrorKind",
    "ReconciliationError",
    "ValidationError",
    "StoreError",
    "InvariantViolation",
    "NormalizedIdentity",
    "normalize_email",
    "normalize_phone",
    "normalize_identity",
    "ContactStore",
    "SqlAlchemyContactStore",
    "IdentityReconciler",
    "IdentityService",
    "project_cluster",
    "select_canonical_primary",
]
