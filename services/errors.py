"""
Error taxonomy for identity reconciliation
The API layer maps errors to status codes by their kind, never by message text.
"""

import enum
from typing import Any, Dict, Optional


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    STORE = "store"
    INVARIANT = "invariant"


class ReconciliationError(Exception):
    """Base class for every failure raised by the reconciliation core"""

    kind: ErrorKind

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(ReconciliationError):
    """Neither an email nor a phone number survived normalization"""

    kind = ErrorKind.VALIDATION


class StoreError(ReconciliationError):
    """A persistence call failed; the surrounding transaction is rolled back"""

    kind = ErrorKind.STORE


class InvariantViolation(ReconciliationError):
    """The contact table is in a state the algorithm cannot produce"""

    kind = ErrorKind.INVARIANT
