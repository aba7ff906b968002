"""
Pydantic schemas for Identity Reconciliation API
Contains request/response models for the API endpoints
"""

from .identify import (
    IdentifyRequest,
    ContactResponse,
    IdentifyResponse,
    ContactRecord,
    ErrorResponse
)

__all__ = [
    "IdentifyRequest",
    "ContactResponse",
    "IdentifyResponse",
    "ContactRecord",
    "ErrorResponse"
]
