"""
Pydantic schemas for the site backend.

Request payloads are the validated-input subsets handed to storage; response
models use the camelCase field names the front-end consumes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NewUser(BaseModel):
    username: str
    password: str


class ContactPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    email: str
    phone: str
    kitchen_size: Optional[str] = Field(default=None, alias="kitchenSize")
    message: Optional[str] = None

    @field_validator("kitchen_size", "message", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        # Absent, null and "" all mean "no value".
        if value == "":
            return None
        return value


class SubscribePayload(BaseModel):
    # Optional here so the route can answer "Email is required" itself.
    email: Optional[str] = None


class ContactSubmissionData(BaseModel):
    id: int
    name: str
    email: str
    phone: str
    kitchenSize: Optional[str] = None
    message: Optional[str] = None
    createdAt: datetime


class NewsletterData(BaseModel):
    id: int
    email: str
    createdAt: datetime


class ContactResponse(BaseModel):
    success: bool
    message: str
    data: ContactSubmissionData


class SubscribeResponse(BaseModel):
    success: bool
    message: str
    data: Optional[NewsletterData] = None


class ContactListResponse(BaseModel):
    success: bool
    data: list[ContactSubmissionData]


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
