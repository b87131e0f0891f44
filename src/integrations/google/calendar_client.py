"""
Google Calendar API client.
"""

from datetime import datetime
from typing import Any

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from src.integrations.google.base import GoogleApiClient, api_error


class CalendarClient(GoogleApiClient):
    rate_limit_namespace = "calendar"

    def __init__(self, credentials, rate_limiter=None):
        super().__init__(credentials, rate_limiter)
        self.service = build("calendar", "v3", credentials=self.credentials, cache_discovery=False)

    def list_events(self, time_min: datetime, time_max: datetime) -> list[dict[str, Any]]:
        """
        List expanded (single) events on the primary calendar within a window.

        Args:
            time_min: Window start (timezone-aware)
            time_max: Window end (timezone-aware)
        """
        events: list[dict[str, Any]] = []
        page_token: str | None = None

        while True:
            try:
                response = self._execute(
                    self.service.events().list(
                        calendarId="primary",
                        timeMin=time_min.isoformat(),
                        timeMax=time_max.isoformat(),
                        singleEvents=True,
                        orderBy="startTime",
                        maxResults=250,
                        pageToken=page_token,
                    )
                )
            except HttpError as e:
                raise api_error("list calendar events", e)

            events.extend(response.get("items", []))
            page_token = response.get("nextPageToken")
            if not page_token:
                break

        return events
