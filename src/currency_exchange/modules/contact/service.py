from __future__ import annotations

import uuid

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from currency_exchange.modules.contact.models import ContactMessage


def create_contact_message(
    session: Session, *, name: str, email: str, subject: str, message: str
) -> ContactMessage:
    contact = ContactMessage(
        name=name.strip(),
        email=email.strip().lower(),
        subject=subject.strip(),
        message=message,
    )
    session.add(contact)
    session.commit()
    session.refresh(contact)
    return contact


def list_contact_messages(session: Session) -> list[ContactMessage]:
    return list(
        session.scalars(
            select(ContactMessage).order_by(
                ContactMessage.created_at.desc(), ContactMessage.id.desc()
            )
        )
    )


def get_contact_message(session: Session, *, contact_id: uuid.UUID) -> ContactMessage:
    contact = session.scalar(select(ContactMessage).where(ContactMessage.id == contact_id))
    if not contact:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Contact with ID {contact_id} not found",
        )
    return contact


def delete_contact_message(session: Session, *, contact_id: uuid.UUID) -> None:
    contact = get_contact_message(session, contact_id=contact_id)
    session.delete(contact)
    session.commit()
