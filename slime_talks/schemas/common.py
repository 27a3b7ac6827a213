"""
schemas/common.py
-----------------
Shared request and response pieces.

Responses follow Stripe-style conventions: every object carries an
``object`` tag, timestamps are Unix seconds under ``created`` and list
endpoints wrap items as ``{"object": "list", "data", "has_more", "total_count"}``.

Emails are validated but kept exactly as sent; every lookup compares them
case-sensitively against the stored value.
"""

from datetime import datetime
from typing import Annotated, Generic, List, Literal, Optional, TypeVar

from email_validator import validate_email
from pydantic import AfterValidator, BaseModel, Field

ItemT = TypeVar("ItemT")


def check_email(value: str) -> str:
    # EmailNotValidError is a ValueError, which pydantic reports as a 422
    validate_email(value, check_deliverability=False)
    return value


Email = Annotated[str, Field(min_length=3, max_length=255), AfterValidator(check_email)]


def unix_seconds(value: Optional[datetime]) -> Optional[int]:
    return int(value.timestamp()) if value is not None else None


class ListResponse(BaseModel, Generic[ItemT]):
    object: Literal["list"] = "list"
    data: List[ItemT]
    has_more: bool
    total_count: int


class DeletedResponse(BaseModel):
    object: str
    id: str
    deleted: bool = True
