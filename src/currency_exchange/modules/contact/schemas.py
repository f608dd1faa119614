from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

THANK_YOU_MESSAGE = "Thank you for contacting us! We will get back to you soon."


class ContactCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    subject: str = Field(min_length=3, max_length=200)
    message: str = Field(min_length=10, max_length=2000)


class ContactOut(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    subject: str
    message: str
    created_at: datetime


class ContactSubmittedOut(BaseModel):
    contact: ContactOut
    message: str = THANK_YOU_MESSAGE
