"""Tests for DiscoveryPipeline — end-to-end over a fake mailbox."""

import base64
from collections.abc import Sequence
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.discovery.errors import (
    AuthExpiredError,
    DiscoveryError,
    ErrorKind,
    QuotaExceededError,
    RateLimitedError,
)
from src.discovery.federation import FALLBACK_NAME, FALLBACK_PRIORITY, QueryFederation
from src.discovery.pipeline import DiscoveryPipeline, discover_relevant_messages
from src.discovery.retrieval import BatchedRetriever
from src.discovery.types import SearchStrategy
from src.gmail.client import GmailAPIError


# ── Helpers ────────────────────────────────────────────────────────────────────


def b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def raw(message_id: str, body: str, subject: str = "Enquiry") -> dict[str, Any]:
    return {
        "id": message_id,
        "threadId": "t",
        "labelIds": ["INBOX", "UNREAD"],
        "internalDate": "1772182800000",
        "payload": {
            "mimeType": "text/plain",
            "headers": [
                {"name": "Subject", "value": subject},
                {"name": "From", "value": "Facilities <fm@example.com>"},
            ],
            "body": {"data": b64(body)},
        },
    }


class FakeMailbox:
    def __init__(
        self,
        searches: dict[str, list[str] | Exception],
        messages: dict[str, dict[str, Any]],
    ) -> None:
        self._searches = searches
        self._messages = messages
        self.fetched: list[str] = []

    async def search(
        self, query: str, *, max_results: int, label_ids: Sequence[str] = ("INBOX",)
    ) -> list[str]:
        for key, value in self._searches.items():
            if query.startswith(key):
                if isinstance(value, Exception):
                    raise value
                return list(value)
        return []

    async def get_message(self, message_id: str, *, fmt: str = "full") -> dict[str, Any]:
        self.fetched.append(message_id)
        return self._messages[message_id]


STRATEGIES = [
    SearchStrategy("s1", "q-s1", 1),
    SearchStrategy("s2", "q-s2", 2),
    SearchStrategy("s3", "q-s3", 3),
]
FALLBACK = SearchStrategy(FALLBACK_NAME, "q-fallback", FALLBACK_PRIORITY)


def make_pipeline(mailbox: FakeMailbox, batch_size: int = 6) -> DiscoveryPipeline:
    return DiscoveryPipeline(
        mailbox,
        strategies=STRATEGIES,
        batch_size=batch_size,
        federation=QueryFederation(mailbox, fallback_factory=lambda: FALLBACK, sleep=AsyncMock()),
        retriever=BatchedRetriever(mailbox, sleep=AsyncMock()),
    )


ACCEPT_BODY = "Tender for HVAC upgrade at our office building, budget attached."
REJECT_BODY = "Thanks for the chat about the warehouse."  # context +1 only


# ── End-to-end ─────────────────────────────────────────────────────────────────


class TestDiscover:
    async def test_end_to_end_scenario(self) -> None:
        mailbox = FakeMailbox(
            searches={
                "q-s1": ["1", "2"],
                "q-s2": ["2", "3"],
                "q-s3": [],
                "q-fallback": ["4"],
            },
            messages={
                "1": raw("1", ACCEPT_BODY),
                "2": raw("2", ACCEPT_BODY),
                "3": raw("3", REJECT_BODY, subject="Hi"),
                "4": raw("4", ACCEPT_BODY),
            },
        )
        emails = await make_pipeline(mailbox).discover_relevant_messages(max_results=10)

        assert mailbox.fetched == ["1", "2", "3", "4"]
        assert [e.id for e in emails] == ["1", "2", "4"]
        assert emails[0].from_name == "Facilities"
        assert emails[0].is_unread is True

    async def test_no_candidates_is_success(self) -> None:
        mailbox = FakeMailbox(searches={}, messages={})
        emails = await make_pipeline(mailbox).discover_relevant_messages()
        assert emails == []
        assert mailbox.fetched == []

    async def test_module_level_entry_point(self) -> None:
        gmail = MagicMock()
        gmail.search = AsyncMock(return_value=[])
        gmail.get_message = AsyncMock()
        assert await discover_relevant_messages(gmail, max_results=4) == []
        # seven strategies plus the fallback
        assert gmail.search.await_count == 8
        assert gmail.search.await_args_list[0].kwargs["max_results"] == 2
        gmail.get_message.assert_not_awaited()

    def test_invalid_batch_size(self) -> None:
        with pytest.raises(ValueError):
            DiscoveryPipeline(FakeMailbox({}, {}), batch_size=0)


# ── Error translation ──────────────────────────────────────────────────────────


def failing_mailbox(error: Exception) -> FakeMailbox:
    return FakeMailbox(
        searches={"q-s1": error, "q-s2": error, "q-s3": error, "q-fallback": error},
        messages={},
    )


class TestErrorTranslation:
    @pytest.mark.parametrize(
        ("status", "reason", "expected", "kind"),
        [
            (401, None, AuthExpiredError, ErrorKind.AUTH_EXPIRED),
            (403, "rateLimitExceeded", QuotaExceededError, ErrorKind.QUOTA_EXCEEDED),
            (403, None, QuotaExceededError, ErrorKind.QUOTA_EXCEEDED),
            (429, None, RateLimitedError, ErrorKind.RATE_LIMITED),
        ],
    )
    async def test_status_mapping(
        self,
        status: int,
        reason: str | None,
        expected: type[DiscoveryError],
        kind: ErrorKind,
    ) -> None:
        pipeline = make_pipeline(failing_mailbox(GmailAPIError(status, "nope", reason)))
        with pytest.raises(expected) as exc_info:
            await pipeline.discover_relevant_messages()
        assert exc_info.value.kind is kind
        assert exc_info.value.status == status
        assert isinstance(exc_info.value.__cause__, GmailAPIError)

    async def test_other_status_is_generic_with_message(self) -> None:
        pipeline = make_pipeline(failing_mailbox(GmailAPIError(500, "Backend Error")))
        with pytest.raises(DiscoveryError) as exc_info:
            await pipeline.discover_relevant_messages()
        assert type(exc_info.value) is DiscoveryError
        assert exc_info.value.kind is ErrorKind.GENERIC
        assert "Backend Error" in str(exc_info.value)

    async def test_non_http_failure_is_generic(self) -> None:
        pipeline = make_pipeline(failing_mailbox(ConnectionError("DNS failure")))
        with pytest.raises(DiscoveryError, match="DNS failure") as exc_info:
            await pipeline.discover_relevant_messages()
        assert exc_info.value.kind is ErrorKind.GENERIC

    async def test_partial_search_failure_is_not_an_error(self) -> None:
        mailbox = FakeMailbox(
            searches={"q-s1": GmailAPIError(429, "slow down"), "q-s2": ["1"]},
            messages={"1": raw("1", ACCEPT_BODY)},
        )
        emails = await make_pipeline(mailbox).discover_relevant_messages()
        assert [e.id for e in emails] == ["1"]

    async def test_retrieval_wide_failure_is_translated(self) -> None:
        mailbox = FakeMailbox(searches={"q-s1": ["1"]}, messages={})
        mailbox.get_message = AsyncMock(side_effect=GmailAPIError(401, "expired"))  # type: ignore[method-assign]
        with pytest.raises(AuthExpiredError):
            await make_pipeline(mailbox).discover_relevant_messages()

    async def test_deleted_candidate_is_not_an_error(self) -> None:
        mailbox = FakeMailbox(searches={"q-s1": ["1"]}, messages={})
        mailbox.get_message = AsyncMock(  # type: ignore[method-assign]
            side_effect=GmailAPIError(404, "Requested entity was not found.", "notFound")
        )
        assert await make_pipeline(mailbox).discover_relevant_messages() == []

    async def test_malformed_candidate_is_not_an_error(self) -> None:
        mailbox = FakeMailbox(searches={"q-s1": ["1"]}, messages={"1": {"payload": "not a dict"}})
        assert await make_pipeline(mailbox).discover_relevant_messages() == []
