"""
Pydantic schemas for identity-provider webhooks.
"""

from typing import Optional
from pydantic import BaseModel, Field


class EmailAddress(BaseModel):
    email_address: str


class IdentityUser(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email_addresses: list[EmailAddress] = Field(default_factory=list)
    image_url: Optional[str] = None


class IdentityEvent(BaseModel):
    type: str
    data: IdentityUser


class IdentityEventResponse(BaseModel):
    success: bool = True
    result: str
