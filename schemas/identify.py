"""
Pydantic schemas for the /identify and /contacts endpoints
Handles request parsing and response serialization.
Normalization and the "at least one field" rule live in the service layer.
"""

from datetime import datetime
from typing import List, Optional, Dict, Any, Union

from pydantic import BaseModel, ConfigDict, Field


class IdentifyRequest(BaseModel):
    """
    Request schema for the /identify endpoint
    Both fields are optional here; a request without either one is rejected
    by the identity service after normalization
    """
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {"email": "lorraine@hillvalley.edu", "phoneNumber": "123456"},
                {"email": "mcfly@hillvalley.edu", "phoneNumber": None},
                {"email": None, "phoneNumber": 123456},
            ]
        }
    )

    email: Optional[Union[str, int, float]] = Field(
        None,
        description="Customer email address",
        examples=["customer@example.com", None]
    )
    phoneNumber: Optional[Union[str, int, float]] = Field(
        None,
        alias="phoneNumber",
        description="Customer phone number, as a string or number",
        examples=["+1234567890", 123456, None]
    )


class ContactResponse(BaseModel):
    """
    Consolidated view of one identity cluster
    """
    model_config = ConfigDict(populate_by_name=True)

    primaryContactId: int = Field(
        description="ID of the primary contact"
    )
    emails: List[str] = Field(
        description="All email addresses of the cluster, primary's first",
        examples=[["lorraine@hillvalley.edu", "mcfly@hillvalley.edu"]]
    )
    phoneNumbers: List[str] = Field(
        description="All phone numbers of the cluster, primary's first",
        examples=[["123456"]]
    )
    secondaryContactIds: List[int] = Field(
        description="IDs of all secondary contacts linked to the primary, in creation order",
        examples=[[23]]
    )


class IdentifyResponse(BaseModel):
    """
    Response schema for the /identify endpoint
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "contact": {
                    "primaryContactId": 1,
                    "emails": ["lorraine@hillvalley.edu", "mcfly@hillvalley.edu"],
                    "phoneNumbers": ["123456"],
                    "secondaryContactIds": [23]
                }
            }
        }
    )

    contact: ContactResponse = Field(
        description="Consolidated contact information"
    )


class ContactRecord(BaseModel):
    """
    One raw row of the contacts table, as listed by /contacts
    """
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    phoneNumber: Optional[str] = Field(None, validation_alias="phone_number")
    email: Optional[str] = None
    linkedId: Optional[int] = Field(None, validation_alias="linked_id")
    linkPrecedence: str = Field(validation_alias="link_precedence")
    createdAt: datetime = Field(validation_alias="created_at")
    updatedAt: datetime = Field(validation_alias="updated_at")
    deletedAt: Optional[datetime] = Field(None, validation_alias="deleted_at")


class ErrorResponse(BaseModel):
    """
    Error response schema for API errors
    """
    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "error": "ValidationError",
                    "message": "Either email or phoneNumber must be provided",
                    "details": {"fields": ["email", "phoneNumber"]}
                },
                {
                    "error": "StoreError",
                    "message": "Database is currently unavailable. Please try again later."
                }
            ]
        }
    )

    error: str = Field(
        description="Error type or category"
    )
    message: str = Field(
        description="Human-readable error message"
    )
    details: Optional[Dict[str, Any]] = Field(
        None,
        description="Additional error details"
    )
