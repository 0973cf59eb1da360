# app/models/api/calendar_request.py
"""
Calendar sync API request models.
Used by the sync routes for input validation.
"""

from pydantic import BaseModel, ConfigDict, Field


class CalendarSyncRequest(BaseModel):
    """Body for POST /functions/calendar-sync. Every field is optional."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    mode: str | None = Field(
        None, description="Sync preset: nightly, onboarding, manual, historical"
    )
    lookback_days: int | None = Field(
        None, alias="lookbackDays", ge=0, le=3650, description="Days before now to include"
    )
    lookforward_days: int | None = Field(
        None, alias="lookforwardDays", ge=0, le=3650, description="Days after now to include"
    )
    user_id: str | None = Field(None, description="Sync only this user")
