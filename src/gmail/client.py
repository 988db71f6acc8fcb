"""Gmail REST client — wraps the Gmail v1 API behind a typed async API."""

import base64
import logging
import os
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from email.mime.text import MIMEText
from typing import Any

import httpx

from src.gmail.types import NormalizedEmail, RawMessage
from src.processing.normalizer import normalize

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://gmail.googleapis.com/gmail/v1/users/me"
DEFAULT_TIMEOUT_SECONDS = 30.0

# Gmail system label IDs (not user-created; used directly)
_INBOX = "INBOX"
_UNREAD = "UNREAD"


class GmailAPIError(Exception):
    """Raised when the Gmail API answers with a non-2xx status.

    ``reason`` is the first ``errors[].reason`` from Gmail's error body
    (e.g. ``rateLimitExceeded``), or None when the body carries none.
    """

    def __init__(self, status: int, message: str, reason: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.message = message
        self.reason = reason

    def __str__(self) -> str:
        suffix = f" ({self.reason})" if self.reason else ""
        return f"Gmail API error {self.status}: {self.message}{suffix}"


class GmailClient:
    """Thin async wrapper around the Gmail REST endpoints the pipeline uses.

    Holds one ``httpx.AsyncClient`` already carrying the bearer token, so the
    same connection pool serves every search and fetch of a discovery run.
    Use the `gmail_client()` context manager to construct and tear down
    correctly.
    """

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    # ── Public API ─────────────────────────────────────────────────────────────

    async def search(
        self,
        query: str,
        *,
        max_results: int,
        label_ids: Sequence[str] = (_INBOX,),
    ) -> list[str]:
        """Return the IDs of messages matching a Gmail search query.

        Only the first page is read — callers ask for as many results as they
        are prepared to fetch.
        """
        params: list[tuple[str, str | int]] = [("q", query), ("maxResults", max_results)]
        params.extend(("labelIds", label) for label in label_ids)
        data = await self._request("GET", "/messages", params=params)
        return self._parse_search_ids(data)

    async def get_message(self, message_id: str, *, fmt: str = "full") -> RawMessage:
        """Return a single message with headers, MIME tree and labels."""
        return await self._request("GET", f"/messages/{message_id}", params={"format": fmt})

    async def get_profile(self) -> dict[str, Any]:
        """Return the mailbox profile (emailAddress, messagesTotal, ...)."""
        return await self._request("GET", "/profile")

    async def test_connection(self) -> bool:
        """Return True when the token is accepted by Gmail. Never raises."""
        try:
            profile = await self.get_profile()
        except (GmailAPIError, httpx.HTTPError, ValueError) as exc:
            logger.error("Gmail connection test failed: %s", exc)
            return False
        return bool(profile)

    async def get_email_details(self, message_id: str) -> NormalizedEmail | None:
        """Fetch and normalize one message; None if it cannot be retrieved."""
        try:
            raw = await self.get_message(message_id)
        except (GmailAPIError, httpx.HTTPError) as exc:
            logger.error("Error fetching email details for %s: %s", message_id, exc)
            return None
        return normalize(raw)

    async def mark_as_read(self, message_id: str) -> bool:
        """Remove the UNREAD label. Failures are logged and reported as False."""
        try:
            await self._request(
                "POST",
                f"/messages/{message_id}/modify",
                json={"removeLabelIds": [_UNREAD]},
            )
        except (GmailAPIError, httpx.HTTPError) as exc:
            logger.error("Error marking email %s as read: %s", message_id, exc)
            return False
        logger.debug("Marked message %s as read", message_id)
        return True

    async def send_reply(
        self,
        original_message_id: str,
        thread_id: str,
        body: str,
        subject: str,
        to: str,
    ) -> bool:
        """Send a plain-text reply in the original thread. Returns success."""
        message = MIMEText(body)
        message["To"] = to
        message["Subject"] = subject if subject.startswith("Re:") else f"Re: {subject}"
        message["In-Reply-To"] = original_message_id
        message["References"] = original_message_id
        raw = base64.urlsafe_b64encode(message.as_bytes()).decode("ascii").rstrip("=")

        try:
            await self._request(
                "POST",
                "/messages/send",
                json={"raw": raw, "threadId": thread_id},
            )
        except (GmailAPIError, httpx.HTTPError) as exc:
            logger.error("Error sending reply to %s: %s", original_message_id, exc)
            return False
        logger.info("Sent reply to %s in thread %s", to, thread_id)
        return True

    # ── Internal helpers ───────────────────────────────────────────────────────

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Issue one API call and return the decoded JSON body.

        Raises GmailAPIError on a non-2xx response; transport failures surface
        as httpx.HTTPError.
        """
        logger.debug("Gmail → %s %s", method, path)
        response = await self._http.request(method, path, **kwargs)
        if response.is_error:
            raise self._error_from_response(response)
        if not response.content:
            return {}
        data = response.json()
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _error_from_response(response: httpx.Response) -> GmailAPIError:
        """Build a GmailAPIError from Gmail's JSON error envelope.

        Gmail errors look like::

            {"error": {"code": 403, "message": "...",
                       "errors": [{"reason": "rateLimitExceeded", ...}]}}
        """
        message = response.reason_phrase or f"HTTP {response.status_code}"
        reason: str | None = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            err = body["error"]
            message = str(err.get("message") or message)
            details = err.get("errors") or []
            if details and isinstance(details[0], dict) and details[0].get("reason"):
                reason = str(details[0]["reason"])
        return GmailAPIError(response.status_code, message, reason)

    @staticmethod
    def _parse_search_ids(data: dict[str, Any]) -> list[str]:
        """Extract message IDs from a messages.list response."""
        return [
            str(m["id"])
            for m in data.get("messages") or []
            if isinstance(m, dict) and m.get("id")
        ]


@asynccontextmanager
async def gmail_client(
    access_token: str | None = None,
    *,
    base_url: str | None = None,
    timeout: float | None = None,
) -> AsyncIterator[GmailClient]:
    """Async context manager that yields a ready-to-use GmailClient.

    The access token comes from the OAuth layer that sits outside this
    package; it is only ever held by the yielded client, never globally.

    Args:
        access_token: OAuth bearer token. Falls back to GMAIL_ACCESS_TOKEN env var.
        base_url: API root. Falls back to GMAIL_API_BASE_URL, then Gmail v1.
        timeout: Per-request timeout in seconds (default 30).

    Example::

        async with gmail_client(token) as client:
            emails = await discover_relevant_messages(client)
    """
    token = access_token or os.environ.get("GMAIL_ACCESS_TOKEN", "")
    if not token:
        raise ValueError(
            "access_token must be provided or GMAIL_ACCESS_TOKEN env var must be set"
        )

    http = httpx.AsyncClient(
        base_url=base_url or os.environ.get("GMAIL_API_BASE_URL", DEFAULT_BASE_URL),
        headers={"Authorization": f"Bearer {token}"},
        timeout=httpx.Timeout(timeout or DEFAULT_TIMEOUT_SECONDS),
    )
    try:
        yield GmailClient(http)
    finally:
        await http.aclose()
