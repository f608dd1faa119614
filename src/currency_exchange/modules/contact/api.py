from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from currency_exchange.api.deps import require_role
from currency_exchange.core.db import db_session
from currency_exchange.modules.contact.schemas import (
    ContactCreate,
    ContactOut,
    ContactSubmittedOut,
)
from currency_exchange.modules.contact.service import (
    create_contact_message,
    delete_contact_message,
    get_contact_message,
    list_contact_messages,
)
from currency_exchange.modules.identity.models import User, UserRole

router = APIRouter(tags=["contact"])


@router.post("/contact", response_model=ContactSubmittedOut, status_code=status.HTTP_201_CREATED)
def create_contact_endpoint(
    payload: ContactCreate,
    session: Session = Depends(db_session),
) -> ContactSubmittedOut:
    contact = create_contact_message(
        session,
        name=payload.name,
        email=str(payload.email),
        subject=payload.subject,
        message=payload.message,
    )
    return ContactSubmittedOut(contact=ContactOut.model_validate(contact, from_attributes=True))


@router.get("/contact", response_model=list[ContactOut])
def list_contacts_endpoint(
    session: Session = Depends(db_session),
    _: User = Depends(require_role(UserRole.ADMIN)),
) -> list[ContactOut]:
    return [
        ContactOut.model_validate(c, from_attributes=True) for c in list_contact_messages(session)
    ]


@router.get("/contact/{contact_id}", response_model=ContactOut)
def get_contact_endpoint(
    contact_id: uuid.UUID,
    session: Session = Depends(db_session),
    _: User = Depends(require_role(UserRole.ADMIN)),
) -> ContactOut:
    contact = get_contact_message(session, contact_id=contact_id)
    return ContactOut.model_validate(contact, from_attributes=True)


@router.delete("/contact/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_contact_endpoint(
    contact_id: uuid.UUID,
    session: Session = Depends(db_session),
    _: User = Depends(require_role(UserRole.ADMIN)),
) -> Response:
    delete_contact_message(session, contact_id=contact_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
