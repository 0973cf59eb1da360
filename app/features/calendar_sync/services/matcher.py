"""
Event-to-contact matching by attendee email.
"""

from collections.abc import Iterable

from app.features.calendar_sync.domain import (
    MATCH_CONFIDENCE_EXACT,
    CalendarEvent,
    ContactEmailMatch,
    ContactSnapshot,
)


def match_events_to_contacts(
    events: Iterable[CalendarEvent], email_index: dict[str, ContactSnapshot]
) -> dict[str, list[ContactEmailMatch]]:
    """
    Map event id -> contacts found among its attendees.

    Lookup is exact on the lowercased address. A contact appears at most
    once per event, keyed on the first attendee that resolved to it.
    Events with no matching attendee are left out of the result.
    """
    matches: dict[str, list[ContactEmailMatch]] = {}

    for event in events:
        if not event.id or not event.has_attendees():
            continue

        event_matches: list[ContactEmailMatch] = []
        seen_contacts: set[str] = set()

        for email in event.attendee_emails():
            normalized = email.strip().lower()
            contact = email_index.get(normalized)
            if contact is None or contact.id in seen_contacts:
                continue

            seen_contacts.add(contact.id)
            event_matches.append(
                ContactEmailMatch(
                    contact_id=contact.id,
                    contact=contact,
                    matched_emails=[normalized],
                    confidence=MATCH_CONFIDENCE_EXACT,
                )
            )

        if event_matches:
            matches[event.id] = event_matches

    return matches
