"""Query federation — runs the RFQ search strategies and merges their hits."""

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable, Sequence
from datetime import date, timedelta

from src.discovery.types import MailProvider, MessageRef, SearchStrategy

logger = logging.getLogger(__name__)

# Applied to every strategy: never pick up the user's own outgoing mail.
_EXCLUDE_OWN_MAIL = "-label:sent -from:me"

_STRATEGY_DELAY_SECONDS = 0.15

FALLBACK_NAME = "Fallback Recent"
FALLBACK_PRIORITY = 4
FALLBACK_MAX_RESULTS = 20
FALLBACK_LOOKBACK_DAYS = 30

_FALLBACK_TERMS = (
    'HVAC OR quotation OR RFQ OR quote OR request OR facility OR building OR office '
    'OR retrofit OR renovation OR mechanical OR "air conditioning"'
)

# Ordered by precedence; federation runs them in this order.
SEARCH_STRATEGIES: tuple[SearchStrategy, ...] = (
    SearchStrategy(
        name="Direct RFQ Keywords",
        query=(
            '(RFQ OR "request for quotation" OR "urgent rfq" OR "quotation request" '
            'OR "quote request" OR tender OR "proposal request" OR "bid request" '
            'OR "estimate request" OR "price quote" OR "cost estimate")'
        ),
        priority=1,
    ),
    SearchStrategy(
        name="HVAC + Request Terms",
        query=(
            '(HVAC OR "air conditioning" OR heating OR cooling OR ventilation '
            'OR "mechanical systems") AND (quotation OR quote OR request OR estimate '
            'OR proposal OR bid OR tender OR "need quote" OR "please provide" '
            'OR "looking for")'
        ),
        priority=1,
    ),
    SearchStrategy(
        name="Building/Facility Projects",
        query=(
            '(building OR facility OR office OR commercial OR industrial OR plant '
            'OR manufacturing OR warehouse OR "business district" OR retrofit '
            'OR renovation OR construction) AND (HVAC OR "air conditioning" '
            'OR mechanical OR electrical OR MEP OR "building services" '
            'OR quotation OR quote)'
        ),
        priority=2,
    ),
    SearchStrategy(
        name="Equipment Specific",
        query=(
            '("fan coil" OR "air handling" OR "air handler" OR "refrigeration unit" '
            'OR "cooling system" OR "heating system" OR "ventilation system" '
            'OR "HVAC system" OR "mechanical equipment" OR chiller OR boiler '
            'OR "heat pump" OR "cassette unit")'
        ),
        priority=2,
    ),
    SearchStrategy(
        name="Technical Requirements",
        query=(
            '("technical requirements" OR "technical specifications" '
            'OR "energy efficient" OR "zone control" OR "temperature control" '
            'OR "humidity control" OR "fresh air" OR "server room cooling" '
            'OR "precision cooling" OR "24/7 cooling")'
        ),
        priority=2,
    ),
    SearchStrategy(
        name="Budget and Timeline",
        query=(
            '(budget OR "around €" OR "approximately €" OR "$" OR "tight deadline" '
            'OR "ASAP" OR "urgent" OR "quick turnaround" OR "need by" OR "quotes by" '
            'OR "deadline") AND (HVAC OR mechanical OR "air conditioning" '
            'OR building OR facility)'
        ),
        priority=3,
    ),
    SearchStrategy(
        name="Business Context",
        query=(
            '("facilities manager" OR "facility manager" OR "project manager" '
            'OR "maintenance manager" OR "building manager") AND (HVAC '
            'OR "air conditioning" OR mechanical OR quotation OR quote OR request)'
        ),
        priority=3,
    ),
)


def fallback_strategy(today: date | None = None) -> SearchStrategy:
    """Broad recency-bounded search used as a recall backstop.

    Matches the looser term set in subject or body over the last
    FALLBACK_LOOKBACK_DAYS days.
    """
    since = (today or date.today()) - timedelta(days=FALLBACK_LOOKBACK_DAYS)
    return SearchStrategy(
        name=FALLBACK_NAME,
        query=(
            f"(subject:({_FALLBACK_TERMS}) OR body:({_FALLBACK_TERMS})) "
            f"after:{since.strftime('%Y/%m/%d')}"
        ),
        priority=FALLBACK_PRIORITY,
    )


def merge_refs(
    refs: dict[str, MessageRef],
    message_ids: Sequence[str],
    strategy: SearchStrategy,
) -> None:
    """Record each id under the numerically smallest priority seen so far.

    An equal or worse priority leaves the existing entry untouched, so the
    first strategy to find an id keeps it on ties.
    """
    for message_id in message_ids:
        existing = refs.get(message_id)
        if existing is None or strategy.priority < existing.priority:
            refs[message_id] = MessageRef(
                id=message_id,
                priority=strategy.priority,
                source_strategy=strategy.name,
            )


class QueryFederation:
    """Runs every search strategy against one mailbox and merges the ids.

    A failing strategy is logged and skipped; only when every strategy fails
    is the first failure re-raised, since nothing could be searched at all.

    Usage::

        federation = QueryFederation(gmail)
        refs = await federation.federate(SEARCH_STRATEGIES, max_results_hint=50)
    """

    def __init__(
        self,
        client: MailProvider,
        *,
        strategy_delay: float = _STRATEGY_DELAY_SECONDS,
        fallback_factory: Callable[[], SearchStrategy] = fallback_strategy,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._strategy_delay = strategy_delay
        self._fallback_factory = fallback_factory
        self._sleep = sleep

    async def federate(
        self,
        strategies: Sequence[SearchStrategy],
        max_results_hint: int,
    ) -> list[MessageRef]:
        """Return unique MessageRefs sorted by priority, ties in first-seen order."""
        per_strategy = max(1, math.ceil(max_results_hint / 2))
        refs: dict[str, MessageRef] = {}
        failures: list[Exception] = []

        for index, strategy in enumerate(strategies):
            if index:
                await self._sleep(self._strategy_delay)
            ids = await self._run(strategy, per_strategy, failures)
            if ids is not None:
                merge_refs(refs, ids, strategy)

        fallback = self._fallback_factory()
        if strategies:
            await self._sleep(self._strategy_delay)
        ids = await self._run(fallback, FALLBACK_MAX_RESULTS, failures)
        if ids is not None:
            new_ids = [i for i in ids if i not in refs]
            merge_refs(refs, new_ids, fallback)
            logger.info("%s contributed %d additional email(s)", fallback.name, len(new_ids))

        if len(failures) == len(strategies) + 1:
            logger.error("All %d search strategies failed", len(failures))
            raise failures[0]

        ordered = sorted(refs.values(), key=lambda ref: ref.priority)
        logger.info("Total unique candidate emails: %d", len(ordered))
        return ordered

    async def _run(
        self,
        strategy: SearchStrategy,
        max_results: int,
        failures: list[Exception],
    ) -> list[str] | None:
        """Run one strategy; returns None (and records the error) on failure."""
        query = f"{strategy.query} {_EXCLUDE_OWN_MAIL}"
        logger.debug("%s (priority %d): %s", strategy.name, strategy.priority, query)
        try:
            ids = await self._client.search(query, max_results=max_results)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Search strategy %r failed: %s", strategy.name, exc)
            failures.append(exc)
            return None

        if ids:
            logger.info("%s found %d email(s)", strategy.name, len(ids))
        else:
            logger.info("%s found no emails", strategy.name)
        return ids
