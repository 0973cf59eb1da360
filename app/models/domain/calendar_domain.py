# app/models/domain/calendar_domain.py
"""
Calendar Domain Models
Normalized view of Google Calendar events used by the sync engine.
Every field is optional on the wire; construction never raises on missing data.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any


def _parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass(slots=True)
class EventDateTime:
    """Start or end of an event: either a date (all-day) or a dateTime."""

    date: str | None = None
    date_time: str | None = None
    time_zone: str | None = None

    @classmethod
    def from_api(cls, data: dict | None) -> "EventDateTime":
        data = data or {}
        return cls(
            date=data.get("date") or None,
            date_time=data.get("dateTime") or None,
            time_zone=data.get("timeZone") or None,
        )

    @property
    def value(self) -> str | None:
        """Raw provider value, dateTime preferred over date."""
        return self.date_time or self.date

    def has_time(self) -> bool:
        return self.date_time is not None

    def as_datetime(self) -> datetime | None:
        if self.date_time:
            return _parse_iso(self.date_time)
        if self.date:
            try:
                return datetime.strptime(self.date, "%Y-%m-%d").replace(tzinfo=UTC)
            except ValueError:
                return None
        return None


@dataclass(slots=True)
class EventAttendee:
    email: str
    display_name: str | None = None
    response_status: str | None = None
    is_self: bool = False
    is_organizer: bool = False

    @classmethod
    def from_api(cls, data: dict) -> "EventAttendee":
        return cls(
            email=(data.get("email") or "").strip(),
            display_name=data.get("displayName") or None,
            response_status=data.get("responseStatus") or None,
            is_self=bool(data.get("self", False)),
            is_organizer=bool(data.get("organizer", False)),
        )


@dataclass(slots=True)
class EventOrganizer:
    email: str | None = None
    display_name: str | None = None
    is_self: bool = False

    @classmethod
    def from_api(cls, data: dict | None) -> "EventOrganizer | None":
        if not data:
            return None
        return cls(
            email=data.get("email") or None,
            display_name=data.get("displayName") or None,
            is_self=bool(data.get("self", False)),
        )


@dataclass(slots=True)
class ConferenceData:
    conference_id: str | None = None
    solution_name: str | None = None
    entry_points: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict | None) -> "ConferenceData | None":
        if not data:
            return None
        solution = data.get("conferenceSolution") or {}
        entry_points = [
            {
                "entry_point_type": ep.get("entryPointType"),
                "uri": ep.get("uri"),
                "label": ep.get("label"),
            }
            for ep in data.get("entryPoints") or []
        ]
        return cls(
            conference_id=data.get("conferenceId"),
            solution_name=solution.get("name"),
            entry_points=entry_points,
        )

    def first_uri(self) -> str | None:
        for entry_point in self.entry_points:
            if entry_point.get("uri"):
                return entry_point["uri"]
        return None


class CalendarEvent:
    """Domain model for a Google Calendar event, normalized for matching."""

    def __init__(self, data: dict):
        self.id = data.get("id")
        self.summary = data.get("summary") or None
        self.description = data.get("description") or None
        self.start = EventDateTime.from_api(data.get("start"))
        self.end = EventDateTime.from_api(data.get("end"))
        self.attendees = [
            EventAttendee.from_api(attendee)
            for attendee in data.get("attendees") or []
            if isinstance(attendee, dict)
        ]
        self.organizer = EventOrganizer.from_api(data.get("organizer"))
        self.location = data.get("location") or None
        self.html_link = data.get("htmlLink") or None
        self.hangout_link = data.get("hangoutLink") or None
        self.conference_data = ConferenceData.from_api(data.get("conferenceData"))
        self.recurring_event_id = data.get("recurringEventId") or None
        self.created = _parse_iso(data.get("created"))
        self.updated = _parse_iso(data.get("updated"))
        self.status = data.get("status") or "confirmed"
        self.raw_data = data

    def __repr__(self) -> str:
        return f"CalendarEvent(id={self.id!r}, summary={self.summary!r})"

    def has_attendees(self) -> bool:
        return len(self.attendees) > 0

    def is_cancelled(self) -> bool:
        return self.status == "cancelled"

    def is_all_day(self) -> bool:
        return not self.start.has_time()

    def attendee_emails(self) -> list[str]:
        return [attendee.email for attendee in self.attendees if attendee.email]

    def duration_minutes(self) -> int | None:
        """Duration in minutes, only when both ends carry a time of day."""
        if not (self.start.has_time() and self.end.has_time()):
            return None

        start_time = self.start.as_datetime()
        end_time = self.end.as_datetime()
        if not start_time or not end_time:
            return None

        # Mixed naive/aware values: treat the naive side as UTC
        if (start_time.tzinfo is None) != (end_time.tzinfo is None):
            start_time = start_time if start_time.tzinfo else start_time.replace(tzinfo=UTC)
            end_time = end_time if end_time.tzinfo else end_time.replace(tzinfo=UTC)

        return round((end_time - start_time).total_seconds() / 60)


@dataclass(slots=True)
class CalendarSyncOptions:
    """Window and filtering options for one events fetch."""

    start_date: datetime
    end_date: datetime
    max_results: int = 250
    include_declined: bool = False
    single_events: bool = True

    @classmethod
    def from_days(
        cls,
        lookback_days: int,
        lookforward_days: int,
        now: datetime | None = None,
        **kwargs,
    ) -> "CalendarSyncOptions":
        now = now or datetime.now(UTC)
        return cls(
            start_date=now - timedelta(days=lookback_days),
            end_date=now + timedelta(days=lookforward_days),
            **kwargs,
        )

