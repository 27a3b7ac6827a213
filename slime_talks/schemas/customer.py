"""
schemas/customer.py
-------------------
Pydantic models for Customer registration and responses.

Naming convention:
  CustomerCreate → inbound request body
  CustomerRead   → outbound response body (never exposes internal ids)
"""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from slime_talks.models.customer import Customer
from slime_talks.schemas.common import Email, unix_seconds


class CustomerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, examples=["Jane Doe"])
    email: Email = Field(..., examples=["jane@acme.io"])
    metadata: Optional[Dict[str, Any]] = Field(
        default=None, description="Free-form key/value data, stored as given"
    )

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()


class CustomerRead(BaseModel):
    object: Literal["customer"] = "customer"
    id: str
    name: str
    email: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created: Optional[int] = None
    livemode: bool = False

    @classmethod
    def from_model(cls, customer: Customer) -> "CustomerRead":
        return cls(
            id=customer.uuid,
            name=customer.name,
            email=customer.email,
            metadata=customer.metadata_ or {},
            created=unix_seconds(customer.created_at),
        )


class ActiveCustomerRead(CustomerRead):
    latest_message_at: Optional[int] = None
