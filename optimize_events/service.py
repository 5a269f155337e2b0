"""Orchestration of optimize events and recommendations requests."""
import asyncio
from typing import Callable, List, Optional
import structlog

from optimize_events.blockers import BlockerJoiner
from optimize_events.config import OptimizeEventsConfig
from optimize_events.entity_resolver import EntityResolver
from optimize_events.extractor import extract_events
from optimize_events.follower import EventFollower
from optimize_events.models import EventRow, EventsResult, FilterCriteria
from optimize_events.paginator import Paginator
from optimize_events.query_builder import (
    build_filter,
    render_events_query,
    render_recommendations_query,
    validate_count,
)

logger = structlog.get_logger()

NO_ENTITIES_STATUS = "No optimization entities found matching the given criteria"
NO_EVENTS_STATUS = "No event results found for given input"
NO_RECOMMENDATIONS_STATUS = "No recommendation results found for given input"


class OptimizeEventsService:
    """Retrieves optimization events and recommendations from UQL."""

    def __init__(self, client, config: Optional[OptimizeEventsConfig] = None):
        self.config = config or OptimizeEventsConfig()
        self.client = client
        self.paginator = Paginator(client)
        self.entity_resolver = EntityResolver(self.paginator)
        self.blocker_joiner = BlockerJoiner(self.paginator)

    async def _build_filter(self, criteria: FilterCriteria) -> Optional[str]:
        """Build the event predicate, or None when no optimization entity matches."""
        if not criteria.needs_entity_lookup():
            return build_filter(criteria)

        optimizer_ids = await self.entity_resolver.resolve(criteria)
        if not optimizer_ids:
            return None
        return build_filter(criteria, optimizer_ids)

    async def list_events(self, criteria: FilterCriteria, follow: bool = False) -> EventsResult:
        """Fetch events matching ``criteria``.

        A result cap, or ``follow``, limits the fetch to the first page; the
        returned cursor is where following continues from.
        """
        validate_count(criteria.count, self.config.max_count)

        filter_str = await self._build_filter(criteria)
        if filter_str is None:
            return EventsResult(status=NO_ENTITIES_STATUS)

        query = render_events_query(criteria, filter_str)
        logger.debug("Rendered events query", query=query)

        # with follow the follow cursor replays what "next" pages would return
        paginate = criteria.count is None and not follow
        collection = await self.paginator.execute(query, extract_events, dataset_label="events", paginate=paginate)
        if collection.pages == 0:
            return EventsResult(status=NO_EVENTS_STATUS)

        logger.info("Retrieved events", total=len(collection.rows), pages=collection.pages)
        return EventsResult(items=collection.rows, total=len(collection.rows), cursor=collection.last_data_set)

    async def list_recommendations(self, criteria: FilterCriteria) -> EventsResult:
        """Fetch recommendations matching ``criteria`` joined with their optimization blockers."""
        validate_count(criteria.count, self.config.max_count)

        filter_str = await self._build_filter(criteria)
        if filter_str is None:
            return EventsResult(status=NO_ENTITIES_STATUS)

        query = render_recommendations_query(criteria, filter_str)
        logger.debug("Rendered recommendations query", query=query)

        collection = await self.paginator.execute(
            query,
            extract_events,
            dataset_label="recommendations",
            paginate=criteria.count is None,
        )
        if collection.pages == 0:
            return EventsResult(status=NO_RECOMMENDATIONS_STATUS)

        rows = await self.blocker_joiner.join_recommendations(collection.rows, criteria, filter_str)
        logger.info("Retrieved recommendations", total=len(rows), pages=collection.pages)
        return EventsResult(items=rows, total=len(rows), cursor=collection.last_data_set)

    async def follow_events(
        self,
        result: EventsResult,
        on_batch: Callable[[List[EventRow]], None],
        cancel_event: asyncio.Event,
        interval: Optional[float] = None,
    ):
        """Tail new events after ``result`` until ``cancel_event`` is set."""
        if result.cursor is None:
            logger.debug("Nothing to follow, no events page was returned")
            return
        follower = EventFollower(
            self.client,
            interval=interval if interval is not None else self.config.follow_interval_seconds,
        )
        await follower.follow(result.cursor, on_batch, cancel_event)
