"""
Google People API client for reading the user's contacts.
"""

from typing import Any

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from src.integrations.google.base import GoogleApiClient, GoogleApiError, api_error

PERSON_FIELDS = "names,emailAddresses,phoneNumbers,organizations,memberships,metadata"
MAX_PAGE_SIZE = 1000


class SyncTokenExpiredError(GoogleApiError):
    """The stored People API sync token is no longer valid (HTTP 410)."""

    pass


class PeopleClient(GoogleApiClient):
    rate_limit_namespace = "people"

    def __init__(self, credentials, rate_limiter=None):
        super().__init__(credentials, rate_limiter)
        self.service = build("people", "v1", credentials=self.credentials, cache_discovery=False)

    def list_connections_page(
        self,
        page_token: str | None = None,
        sync_token: str | None = None,
        page_size: int = MAX_PAGE_SIZE,
    ) -> dict[str, Any]:
        """
        Fetch one page of connections.

        Returns:
            Raw response with "connections", "nextPageToken" and, on the last page,
            "nextSyncToken"
        """
        try:
            return self._execute(
                self.service.people().connections().list(
                    resourceName="people/me",
                    pageSize=min(page_size, MAX_PAGE_SIZE),
                    pageToken=page_token,
                    personFields=PERSON_FIELDS,
                    requestSyncToken=True,
                    syncToken=sync_token,
                )
            )
        except HttpError as e:
            if e.resp.status == 410:
                raise SyncTokenExpiredError("Contacts sync token expired", status_code=410) from e
            raise api_error("list Google contacts", e)

    def list_all_connections(
        self, sync_token: str | None = None
    ) -> tuple[list[dict[str, Any]], list[str], str | None]:
        """
        Page through connections until exhausted.

        With a sync_token only changes since that token are returned; deleted
        people are reported separately by resource name.

        Returns:
            Tuple of (people, deleted_resource_names, next_sync_token)
        """
        people: list[dict[str, Any]] = []
        deleted: list[str] = []
        next_sync_token: str | None = None
        page_token: str | None = None

        while True:
            response = self.list_connections_page(page_token=page_token, sync_token=sync_token)

            for person in response.get("connections", []):
                if person.get("metadata", {}).get("deleted"):
                    deleted.append(person["resourceName"])
                else:
                    people.append(person)
            deleted.extend(response.get("deletedContactResourceNames", []))

            next_sync_token = response.get("nextSyncToken", next_sync_token)
            page_token = response.get("nextPageToken")
            if not page_token:
                break

        return people, deleted, next_sync_token
