"""
Read-only contact queries for calendar matching.
"""

from app.db.helpers import fetch_all, fetch_val
from app.features.calendar_sync.domain import ContactSnapshot


class ContactRepository:
    """Loads contacts with every email address they are known by."""

    # contact_emails rows are aggregated in one round trip
    CONTACTS_WITH_EMAILS_QUERY = """
        SELECT
            c.id,
            c.name,
            c.email,
            COALESCE(c.email_addresses, ARRAY[]::text[]) AS email_addresses,
            COALESCE(
                array_agg(ce.email ORDER BY ce.created_at) FILTER (WHERE ce.email IS NOT NULL),
                ARRAY[]::text[]
            ) AS linked_emails
        FROM contacts c
        LEFT JOIN contact_emails ce ON ce.contact_id = c.id
        WHERE c.user_id = %s
          AND COALESCE(c.is_self_contact, false) = false
        GROUP BY c.id, c.name, c.email, c.email_addresses
    """

    @staticmethod
    def _row_to_contact(row: dict) -> ContactSnapshot:
        return ContactSnapshot(
            id=str(row["id"]),
            name=row.get("name"),
            email=row.get("email"),
            email_addresses=list(row.get("email_addresses") or []),
            linked_emails=list(row.get("linked_emails") or []),
        )

    @classmethod
    async def list_with_emails(cls, user_id: str) -> list[ContactSnapshot]:
        """Non-self contacts for a user with primary, list and linked emails."""
        rows = await fetch_all(cls.CONTACTS_WITH_EMAILS_QUERY, (user_id,))
        return [cls._row_to_contact(row) for row in rows]

    @classmethod
    async def find_goal_id(cls, contact_id: str) -> str | None:
        """First goal the contact belongs to, if any."""
        query = """
            SELECT goal_id
            FROM goal_contacts
            WHERE contact_id = %s
            ORDER BY created_at ASC NULLS LAST
            LIMIT 1
        """
        goal_id = await fetch_val(query, (contact_id,))
        return str(goal_id) if goal_id else None
