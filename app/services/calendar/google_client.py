"""
Google Calendar API client for the sync engine.
Reads events over a date window, refreshing OAuth tokens when needed and
handing every new credential set to the caller before it is used.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.calendar_domain import CalendarEvent, CalendarSyncOptions
from app.models.domain.oauth_domain import IntegrationRecord, TokenUpdate
from app.services.google_oauth_service import GoogleOAuthError, GoogleOAuthService

logger = get_logger(__name__)

# Google Calendar API configuration
CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"
CALENDAR_PRIMARY = "primary"  # User's primary calendar
EVENTS_PAGE_SIZE = 250  # events.list hard cap per page

# Request timeouts and retry configuration
REQUEST_TIMEOUT = 30  # seconds (calendar operations can be slower)
MAX_RETRIES = 3
BACKOFF_FACTOR = 2
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}

TokenCallback = Callable[[str, TokenUpdate], Awaitable[None]]


class GoogleCalendarError(Exception):
    """Custom exception for Google Calendar API errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code
        self.response_data = response_data or {}


class IntegrationUnusableError(GoogleCalendarError):
    """Access token expired and no refresh token is available."""

    def __init__(self, integration_id: str, user_id: str):
        super().__init__(
            "Calendar access token expired and no refresh token available",
            error_code="token_expired",
            status_code=401,
        )
        self.integration_id = integration_id
        self.user_id = user_id


class GoogleCalendarService:
    """
    Service for Google Calendar event reads.

    Args:
        on_tokens: Awaited with (integration_id, TokenUpdate) after every
            refresh, before the refreshed token is used for an events call.
        oauth_service: Token endpoint client (defaults to a new GoogleOAuthService)
        token_refresh_buffer_seconds: Refresh ahead of expiry by this margin
    """

    def __init__(
        self,
        on_tokens: TokenCallback | None = None,
        oauth_service: GoogleOAuthService | None = None,
        token_refresh_buffer_seconds: int | None = None,
    ):
        self.on_tokens = on_tokens
        self.oauth_service = oauth_service or GoogleOAuthService()
        self.token_refresh_buffer_seconds = (
            token_refresh_buffer_seconds
            if token_refresh_buffer_seconds is not None
            else settings.TOKEN_REFRESH_BUFFER_SECONDS
        )
        self._client = self._create_client()

    def _create_client(self) -> httpx.AsyncClient:
        """Create async HTTP client for Calendar API."""
        timeout = httpx.Timeout(REQUEST_TIMEOUT)
        limits = httpx.Limits(max_keepalive_connections=20, max_connections=50)
        return httpx.AsyncClient(timeout=timeout, limits=limits)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "GoogleCalendarService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request_with_retry(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with retry and backoff."""
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = await self._client.request(method, url, **kwargs)
                if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                    backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                    logger.debug(
                        "Calendar API retrying request",
                        attempt=attempt,
                        status_code=response.status_code,
                        backoff_seconds=backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                return response
            except httpx.RequestError as e:
                if attempt >= MAX_RETRIES:
                    raise
                backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                logger.debug(
                    "Calendar API request error, retrying",
                    attempt=attempt,
                    error=str(e),
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
        raise RuntimeError("Calendar API retry loop exhausted")

    def _get_auth_headers(self, access_token: str) -> dict:
        """Get authorization headers for Calendar API requests."""
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }

    def _handle_api_response(self, response: httpx.Response, operation: str) -> dict:
        """
        Handle and validate Calendar API response.

        Args:
            response: HTTP response from Calendar API
            operation: Operation name for logging

        Returns:
            dict: Parsed response data

        Raises:
            GoogleCalendarError: If response contains errors
        """
        logger.debug(
            f"Calendar API {operation} response",
            status_code=response.status_code,
            response_size=len(response.text) if response.text else 0,
        )

        if response.is_success:
            try:
                return response.json() if response.text else {}
            except ValueError as e:
                logger.error(f"Failed to parse Calendar API {operation} response", error=str(e))
                raise GoogleCalendarError(f"Invalid response format: {e}") from e

        try:
            error_data = response.json() if response.text else {}
        except ValueError:
            logger.error(
                f"Calendar API {operation} failed with non-JSON response",
                status_code=response.status_code,
                response_text=response.text[:200] if response.text else "",
            )
            raise GoogleCalendarError(
                f"Calendar API error (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from None

        error_info = error_data.get("error", {}) if isinstance(error_data, dict) else {}
        if not isinstance(error_info, dict):
            error_info = {"message": str(error_info)}

        error_code = str(error_info.get("code", response.status_code))
        error_message = error_info.get("message", "Unknown Calendar API error")

        logger.error(
            f"Calendar API {operation} failed",
            status_code=response.status_code,
            error_code=error_code,
            error_message=error_message,
        )

        raise GoogleCalendarError(
            self._map_calendar_error(error_code, error_message),
            error_code=error_code,
            status_code=response.status_code,
            response_data=error_data,
        )

    def _map_calendar_error(self, error_code: str, error_message: str) -> str:
        """Map Calendar API error codes to user-friendly messages."""
        error_mappings = {
            "403": "Calendar access denied. Please check permissions.",
            "404": "Calendar not found.",
            "400": "Invalid calendar request format.",
            "401": "Calendar authorization expired. Please reconnect.",
            "429": "Too many calendar requests. Please try again later.",
            "500": "Google Calendar service temporarily unavailable.",
        }

        return error_mappings.get(error_code, f"Calendar error: {error_message}")

    async def _refresh_tokens(self, integration: IntegrationRecord) -> None:
        """Refresh, persist through on_tokens, then adopt the new tokens in memory."""
        try:
            token_response = await self.oauth_service.refresh_access_token(
                integration.refresh_token
            )
        except GoogleOAuthError as e:
            logger.error(
                "Calendar token refresh failed",
                user_id=integration.user_id,
                integration_id=integration.id,
                error=str(e),
                error_code=e.error_code,
            )
            raise GoogleCalendarError(
                f"Failed to refresh calendar token: {e}",
                error_code=e.error_code or "token_refresh_failed",
                status_code=401,
                response_data=e.response_data,
            ) from e

        update = TokenUpdate(
            access_token=token_response.access_token,
            refresh_token=token_response.refresh_token,
            expires_at=token_response.expires_at,
        )

        if self.on_tokens is not None:
            await self.on_tokens(integration.id, update)

        integration.apply_tokens(update)
        logger.info(
            "Calendar token refreshed",
            user_id=integration.user_id,
            integration_id=integration.id,
            refresh_token_rotated=bool(update.refresh_token),
        )

    async def _ensure_fresh_token(self, integration: IntegrationRecord) -> None:
        if not integration.is_expired(buffer_seconds=self.token_refresh_buffer_seconds):
            return
        if not integration.is_refreshable():
            # Inside the refresh buffer the current token still works
            if not integration.is_expired():
                return
            logger.warning(
                "Calendar token expired without refresh token",
                user_id=integration.user_id,
                integration_id=integration.id,
            )
            raise IntegrationUnusableError(integration.id, integration.user_id)
        await self._refresh_tokens(integration)

    def _build_params(self, options: CalendarSyncOptions, page_size: int) -> dict[str, Any]:
        params: dict[str, Any] = {
            "timeMin": options.start_date.isoformat(),
            "timeMax": options.end_date.isoformat(),
            "maxResults": page_size,
            "singleEvents": "true" if options.single_events else "false",
        }
        if options.single_events:
            params["orderBy"] = "startTime"
        return params

    async def _fetch_page(
        self, integration: IntegrationRecord, params: dict[str, Any], refreshed: bool
    ) -> tuple[dict, bool]:
        """Fetch one events page, refreshing once on 401 when possible."""
        url = f"{CALENDAR_API_BASE_URL}/calendars/{CALENDAR_PRIMARY}/events"
        response = await self._request_with_retry(
            "GET", url, headers=self._get_auth_headers(integration.access_token), params=params
        )

        if response.status_code == 401 and not refreshed and integration.is_refreshable():
            logger.info(
                "Calendar API rejected access token, refreshing",
                user_id=integration.user_id,
                integration_id=integration.id,
            )
            await self._refresh_tokens(integration)
            response = await self._request_with_retry(
                "GET",
                url,
                headers=self._get_auth_headers(integration.access_token),
                params=params,
            )
            refreshed = True

        return self._handle_api_response(response, "list_events"), refreshed

    async def list_events(
        self, integration: IntegrationRecord, options: CalendarSyncOptions
    ) -> list[CalendarEvent]:
        """
        List events from the user's primary calendar.

        Events without attendees are dropped; cancelled events are dropped
        unless options.include_declined is set.

        Args:
            integration: Stored credentials; updated in place after a refresh
            options: Date window and filtering options

        Returns:
            List[CalendarEvent]: Normalized events

        Raises:
            IntegrationUnusableError: Token expired and cannot be refreshed
            GoogleCalendarError: If listing events fails
        """
        try:
            await self._ensure_fresh_token(integration)

            logger.info(
                "Listing calendar events",
                user_id=integration.user_id,
                time_min=options.start_date.isoformat(),
                time_max=options.end_date.isoformat(),
                max_results=options.max_results,
            )

            raw_items: list[dict] = []
            page_token: str | None = None
            refreshed = False

            while len(raw_items) < options.max_results:
                page_size = min(EVENTS_PAGE_SIZE, options.max_results - len(raw_items))
                params = self._build_params(options, page_size)
                if page_token:
                    params["pageToken"] = page_token

                data, refreshed = await self._fetch_page(integration, params, refreshed)
                raw_items.extend(item for item in data.get("items", []) if isinstance(item, dict))

                page_token = data.get("nextPageToken")
                if not page_token:
                    break

            events = [CalendarEvent(item) for item in raw_items[: options.max_results]]
            kept = [
                event
                for event in events
                if event.has_attendees()
                and (options.include_declined or not event.is_cancelled())
            ]

            logger.info(
                "Events listed successfully",
                user_id=integration.user_id,
                fetched_count=len(events),
                event_count=len(kept),
            )
            return kept

        except GoogleCalendarError:
            raise
        except httpx.RequestError as e:
            logger.error(
                "Network error listing events",
                user_id=integration.user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise GoogleCalendarError(f"Network error listing events: {e}") from e
