"""
Gmail API client with rate limiting and batching support.
Lists message ids (full or incremental via history) and fetches parsed messages.
"""

import base64
from datetime import datetime, timezone
from email.utils import getaddresses, parseaddr, parsedate_to_datetime
from typing import Any

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from src.core.config import settings
from src.core.logging import get_logger
from src.integrations.google.base import GoogleApiClient, GoogleApiError, api_error

logger = get_logger(__name__)

# Gmail batch API allows 100 requests per batch; 50 keeps within the token bucket burst
BATCH_CHUNK_SIZE = 50
MAX_BODY_LENGTH = 10000


class HistoryExpiredError(GoogleApiError):
    """The stored historyId is too old for incremental sync (HTTP 404)."""

    pass


class GmailClient(GoogleApiClient):
    """
    Gmail API client.

    Provides methods to:
    - List message ids for a search query with pagination
    - List message ids added since a historyId
    - Batch fetch and parse full messages
    """

    rate_limit_namespace = "gmail"

    def __init__(self, credentials, rate_limiter=None):
        super().__init__(credentials, rate_limiter)
        self.service = build("gmail", "v1", credentials=self.credentials, cache_discovery=False)

    def get_profile(self) -> dict[str, Any]:
        """Return {"emailAddress", "historyId", ...} for the authenticated mailbox."""
        try:
            return self._execute(self.service.users().getProfile(userId="me"))
        except HttpError as e:
            raise api_error("fetch Gmail profile", e)

    def list_message_ids(
        self,
        query: str | None = None,
        page_token: str | None = None,
        page_size: int | None = None,
    ) -> tuple[list[str], str | None]:
        """
        Fetch one page of message ids.

        Args:
            query: Gmail search query (e.g. "newer_than:365d")
            page_token: Token from the previous page
            page_size: Ids per page (max 500)

        Returns:
            Tuple of (message_ids, next_page_token)
        """
        page_size = page_size or settings.gmail_fetch_page_size
        try:
            response = self._execute(
                self.service.users().messages().list(
                    userId="me",
                    maxResults=min(page_size, 500),
                    pageToken=page_token,
                    q=query,
                )
            )
        except HttpError as e:
            raise api_error("list Gmail messages", e)

        message_ids = [msg["id"] for msg in response.get("messages", [])]
        return message_ids, response.get("nextPageToken")

    def list_history(self, start_history_id: str) -> tuple[list[str], str | None]:
        """
        List ids of messages added since a historyId.

        Returns:
            Tuple of (message_ids, latest_history_id)

        Raises:
            HistoryExpiredError: If Gmail no longer has history for start_history_id
        """
        message_ids: list[str] = []
        seen: set[str] = set()
        latest_history_id: str | None = None
        page_token: str | None = None

        while True:
            try:
                response = self._execute(
                    self.service.users().history().list(
                        userId="me",
                        startHistoryId=start_history_id,
                        historyTypes=["messageAdded"],
                        pageToken=page_token,
                    )
                )
            except HttpError as e:
                if e.resp.status == 404:
                    raise HistoryExpiredError(
                        f"History {start_history_id} expired", status_code=404
                    ) from e
                raise api_error("list Gmail history", e)

            for record in response.get("history", []):
                for added in record.get("messagesAdded", []):
                    msg_id = added.get("message", {}).get("id")
                    if msg_id and msg_id not in seen:
                        seen.add(msg_id)
                        message_ids.append(msg_id)

            latest_history_id = response.get("historyId", latest_history_id)
            page_token = response.get("nextPageToken")
            if not page_token:
                break

        return message_ids, latest_history_id

    def fetch_message_batch(self, message_ids: list[str]) -> list[dict[str, Any]]:
        """
        Batch fetch and parse full messages.
        Messages that fail individually are logged and left out.
        """
        if not message_ids:
            return []

        messages = []
        for i in range(0, len(message_ids), BATCH_CHUNK_SIZE):
            messages.extend(self._fetch_batch_chunk(message_ids[i : i + BATCH_CHUNK_SIZE]))
        return messages

    def _fetch_batch_chunk(self, message_ids: list[str]) -> list[dict[str, Any]]:
        # Keyed by message id so a retried batch does not duplicate results
        parsed: dict[str, dict[str, Any]] = {}

        def callback(request_id: str, response: dict, exception: Exception | None) -> None:
            if exception:
                logger.warning(f"Error fetching message {request_id}: {exception}")
                return
            try:
                parsed[request_id] = parse_message(response)
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Error parsing message {request_id}: {e}")

        batch = self.service.new_batch_http_request()
        for msg_id in message_ids:
            batch.add(
                self.service.users().messages().get(userId="me", id=msg_id, format="full"),
                callback=callback,
                request_id=msg_id,
            )

        try:
            self._execute(batch, tokens=len(message_ids))
        except HttpError as e:
            raise api_error("fetch Gmail message batch", e)

        return [parsed[msg_id] for msg_id in message_ids if msg_id in parsed]


def parse_message(message: dict) -> dict[str, Any]:
    """
    Parse a Gmail API message resource.

    Example output:
        {
            "message_id": "abc123",
            "thread_id": "thread123",
            "subject": "Hello",
            "snippet": "Preview text...",
            "from": ("Jane Doe", "jane@example.com"),
            "to": [("", "me@example.com")],
            "cc": [],
            "date": datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
            "body": "Plain text body" | None,
        }
    """
    headers = {
        header["name"].lower(): header["value"]
        for header in message.get("payload", {}).get("headers", [])
    }

    sender_name, sender_email = parseaddr(headers.get("from", ""))

    return {
        "message_id": message["id"],
        "thread_id": message.get("threadId"),
        "subject": headers.get("subject"),
        "snippet": message.get("snippet", ""),
        "from": (sender_name, sender_email),
        "to": getaddresses([headers["to"]]) if headers.get("to") else [],
        "cc": getaddresses([headers["cc"]]) if headers.get("cc") else [],
        "date": _message_date(headers.get("date"), message.get("internalDate")),
        "body": extract_body(message.get("payload", {})),
    }


def _message_date(date_header: str | None, internal_date: str | None) -> datetime:
    if date_header:
        try:
            parsed = parsedate_to_datetime(date_header)
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        except (TypeError, ValueError):
            pass
    if internal_date:
        return datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc)
    return datetime.now(timezone.utc)


def extract_body(payload: dict) -> str | None:
    """Return the first text/plain body found in a payload, truncated."""
    if payload.get("mimeType", "text/plain") == "text/plain" and payload.get("body", {}).get("data"):
        return _decode(payload["body"]["data"])

    for part in payload.get("parts", []):
        if part.get("mimeType") == "text/plain" and part.get("body", {}).get("data"):
            return _decode(part["body"]["data"])
        if "parts" in part:
            nested = extract_body(part)
            if nested:
                return nested

    return None


def _decode(data: str) -> str:
    text = base64.urlsafe_b64decode(data).decode("utf-8", errors="ignore")
    return text[:MAX_BODY_LENGTH]
