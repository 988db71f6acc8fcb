"""Batched retrieval — fetches candidate messages in small concurrent batches."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

import httpx

from src.discovery.types import MailProvider, MessageRef
from src.gmail.client import GmailAPIError
from src.gmail.types import NormalizedEmail
from src.processing.classifier import classify_email
from src.processing.normalizer import normalize
from src.processing.types import ClassificationResult

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 6

# Pacing between batches: starts at 200ms and grows 100ms per batch, capped
_PACING_BASE_SECONDS = 0.2
_PACING_STEP_SECONDS = 0.1
_PACING_MAX_SECONDS = 0.5

# Statuses that mean the whole mailbox is unreachable, not just one message
_SYSTEMIC_STATUSES = frozenset({401, 403, 429})


def pacing_delay(batch_index: int) -> float:
    """Seconds to wait after batch `batch_index` (0-based) completes."""
    return min(_PACING_BASE_SECONDS + batch_index * _PACING_STEP_SECONDS, _PACING_MAX_SECONDS)


def is_systemic_failure(error: Exception) -> bool:
    """True when a fetch failure says nothing more can be fetched this run."""
    if isinstance(error, GmailAPIError):
        return error.status in _SYSTEMIC_STATUSES
    return isinstance(error, httpx.TransportError)


class _Failed:
    """Marks a fetch that raised; keeps the exception for the all-failed check."""

    __slots__ = ("error",)

    def __init__(self, error: Exception) -> None:
        self.error = error


class BatchedRetriever:
    """Fetches, normalizes and classifies candidates batch by batch.

    All fetches inside a batch run concurrently; batches run one after another
    with a growing pause between them to stay inside Gmail's per-user quota.
    A failed fetch drops only that message. Nothing is retried. The run only
    fails when every fetch failed for a mailbox-wide reason (auth, quota,
    rate limit, transport).

    Usage::

        retriever = BatchedRetriever(gmail)
        emails = await retriever.retrieve(refs, batch_size=6)
    """

    def __init__(
        self,
        client: MailProvider,
        *,
        classifier: Callable[[NormalizedEmail], ClassificationResult] = classify_email,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._classifier = classifier
        self._sleep = sleep

    async def retrieve(
        self,
        refs: Sequence[MessageRef],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> list[NormalizedEmail]:
        """Return the accepted emails, in the order of `refs`.

        Re-raises the first failure only when every fetch failed and every
        failure is systemic (see `is_systemic_failure`).
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")

        batches = [refs[i:i + batch_size] for i in range(0, len(refs), batch_size)]
        accepted: list[NormalizedEmail] = []
        failures: list[Exception] = []

        for index, batch in enumerate(batches):
            logger.info(
                "Processing batch %d/%d (%d email(s))", index + 1, len(batches), len(batch)
            )
            # gather preserves argument order regardless of completion order
            results = await asyncio.gather(*(self._fetch_one(ref) for ref in batch))
            for result in results:
                if isinstance(result, _Failed):
                    failures.append(result.error)
                elif result is not None:
                    accepted.append(result)

            if index < len(batches) - 1:
                await self._sleep(pacing_delay(index))

        if refs and len(failures) == len(refs) and all(map(is_systemic_failure, failures)):
            logger.error("All %d message fetches failed", len(refs))
            raise failures[0]

        logger.info("Accepted %d of %d candidate email(s)", len(accepted), len(refs))
        return accepted

    async def _fetch_one(self, ref: MessageRef) -> NormalizedEmail | _Failed | None:
        """Fetch one message; None when the classifier rejects it."""
        try:
            raw = await self._client.get_message(ref.id, fmt="full")
            email = normalize(raw)
            result = self._classifier(email)
        except Exception as exc:  # noqa: BLE001
            logger.error("Error fetching email %s (%s): %s", ref.id, ref.source_strategy, exc)
            return _Failed(exc)

        if not result.is_accepted:
            logger.info(
                "Filtered out %r: score %d below threshold", email.subject, result.total_score
            )
            return None
        logger.info("Accepted RFQ email %r from %s", email.subject, email.from_email)
        return email
