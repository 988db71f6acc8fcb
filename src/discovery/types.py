"""Types for search federation and batched retrieval."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from src.gmail.types import RawMessage


@dataclass(frozen=True)
class SearchStrategy:
    """One fixed Gmail search query and its precedence (lower wins)."""

    name: str
    query: str
    priority: int


@dataclass(frozen=True)
class MessageRef:
    """A candidate message id with the best priority any strategy gave it.

    Lives only for one discovery run; its order decides retrieval order.
    """

    id: str
    priority: int
    source_strategy: str


# ── Provider interface ─────────────────────────────────────────────────────────


@runtime_checkable
class MailProvider(Protocol):
    """The two mailbox operations discovery needs.

    ``src.gmail.client.GmailClient`` is the production implementation; tests
    pass fakes.
    """

    async def search(
        self,
        query: str,
        *,
        max_results: int,
        label_ids: Sequence[str] = ...,
    ) -> list[str]:
        ...

    async def get_message(self, message_id: str, *, fmt: str = ...) -> RawMessage:
        ...
