"""
Contact index: lowercased email -> contact.
"""

from collections.abc import Iterable

from app.db.helpers import DatabaseError
from app.features.calendar_sync.domain import ContactSnapshot
from app.features.calendar_sync.repository.contact_repository import ContactRepository
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class ContactIndexError(Exception):
    """Contact query failed; the user's run cannot match anything."""

    def __init__(self, message: str, user_id: str):
        super().__init__(message)
        self.user_id = user_id


def _normalize(email: str | None) -> str | None:
    if not email:
        return None
    normalized = email.strip().lower()
    return normalized or None


def build_email_index(contacts: Iterable[ContactSnapshot]) -> dict[str, ContactSnapshot]:
    """
    Union every address a contact is known by into one lookup.

    Sources are applied in order (primary email, email_addresses list,
    contact_emails rows); when two contacts share an address the later
    write wins.
    """
    contacts = list(contacts)
    index: dict[str, ContactSnapshot] = {}

    for contact in contacts:
        key = _normalize(contact.email)
        if key:
            index[key] = contact

    for contact in contacts:
        for address in contact.email_addresses:
            key = _normalize(address)
            if key:
                index[key] = contact

    for contact in contacts:
        for address in contact.linked_emails:
            key = _normalize(address)
            if key:
                index[key] = contact

    return index


class ContactIndexBuilder:
    def __init__(self, repository: type[ContactRepository] = ContactRepository):
        self.repository = repository

    async def build(self, user_id: str) -> dict[str, ContactSnapshot]:
        try:
            contacts = await self.repository.list_with_emails(user_id)
        except DatabaseError as e:
            logger.error("Contact index query failed", user_id=user_id, error=str(e))
            raise ContactIndexError(f"Failed to load contacts: {e}", user_id=user_id) from e

        index = build_email_index(contacts)
        logger.info(
            "Contact index built",
            user_id=user_id,
            contact_count=len(contacts),
            email_count=len(index),
        )
        return index
