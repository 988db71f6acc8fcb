"""Discovery pipeline — the single entry point from mailbox to accepted RFQs."""

import logging
from collections.abc import Sequence

from src.discovery.errors import DiscoveryError, error_from_status
from src.discovery.federation import SEARCH_STRATEGIES, QueryFederation
from src.discovery.retrieval import DEFAULT_BATCH_SIZE, BatchedRetriever
from src.discovery.types import MailProvider, SearchStrategy
from src.gmail.client import GmailAPIError
from src.gmail.types import NormalizedEmail

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 50


class DiscoveryPipeline:
    """Federation followed by batched retrieval against one mailbox.

    Partial failures (one strategy, one message) are absorbed further down;
    anything that reaches this level is translated into a DiscoveryError
    subclass.  Cancellation propagates untouched.
    """

    def __init__(
        self,
        client: MailProvider,
        *,
        strategies: Sequence[SearchStrategy] = SEARCH_STRATEGIES,
        batch_size: int = DEFAULT_BATCH_SIZE,
        federation: QueryFederation | None = None,
        retriever: BatchedRetriever | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self._strategies = strategies
        self._batch_size = batch_size
        self._federation = federation or QueryFederation(client)
        self._retriever = retriever or BatchedRetriever(client)

    async def discover_relevant_messages(
        self, max_results: int = DEFAULT_MAX_RESULTS
    ) -> list[NormalizedEmail]:
        """Return accepted RFQ emails in priority order.

        Raises:
            AuthExpiredError, QuotaExceededError, RateLimitedError: mapped
                from Gmail's HTTP status.
            DiscoveryError: any other failure, with the original message.
        """
        try:
            refs = await self._federation.federate(self._strategies, max_results)
            if not refs:
                logger.info("No potential RFQ emails found with any search strategy")
                return []
            emails = await self._retriever.retrieve(refs, self._batch_size)
        except DiscoveryError:
            raise
        except GmailAPIError as exc:
            logger.error("Gmail API error during discovery: %s", exc)
            raise error_from_status(exc.status, exc.message, exc.reason) from exc
        except Exception as exc:
            logger.error("Discovery failed: %s", exc, exc_info=True)
            raise DiscoveryError(f"Failed to fetch emails from Gmail: {exc}") from exc

        logger.info("Final RFQ emails: %d", len(emails))
        for position, email in enumerate(emails, start=1):
            logger.debug("  %d. %r from %s (%s)", position, email.subject, email.from_email, email.id)
        return emails


async def discover_relevant_messages(
    client: MailProvider,
    max_results: int = DEFAULT_MAX_RESULTS,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> list[NormalizedEmail]:
    """Run the full discovery pipeline with the default strategies.

    Example::

        async with gmail_client(token) as gmail:
            emails = await discover_relevant_messages(gmail, max_results=50)
    """
    pipeline = DiscoveryPipeline(client, batch_size=batch_size)
    return await pipeline.discover_relevant_messages(max_results)
