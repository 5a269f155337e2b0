"""Join of recommendations with the ignored blockers of their optimization."""
from typing import Any, Dict, List, Sequence
import structlog

from optimize_events.extractor import extract_started_blockers, optimization_key
from optimize_events.models import EventRow, FilterCriteria, RecommendationRow
from optimize_events.paginator import Paginator
from optimize_events.query_builder import (
    OPTIMIZATION_NUM_ATTRIBUTE,
    OPTIMIZER_ID_ATTRIBUTE,
    render_optimization_started_query,
)

logger = structlog.get_logger()


def blocker_id(attribute: str) -> str:
    """Return the blocker id of an ``optimize.ignored_blockers.<id>.<field>`` attribute, or ""."""
    if "principal" in attribute:
        return ""
    parts = attribute.split(".")
    if len(parts) <= 3:
        return ""
    return parts[-2]


def merge_blockers(row: EventRow, blockers: Dict[str, Any]) -> RecommendationRow:
    """Copy blocker attributes into a recommendation and derive its blocker ids."""
    blocker_ids: List[str] = []
    for attribute in blockers:
        found = blocker_id(attribute)
        if found and found not in blocker_ids:
            blocker_ids.append(found)

    return RecommendationRow(
        timestamp=row.timestamp,
        event_attributes=dict(row.event_attributes),
        blockers_attributes=dict(blockers),
        blockers_present=len(blocker_ids) > 0,
        blockers=blocker_ids,
    )


class BlockerJoiner:
    """Merges optimization_started blocker context into recommendation rows."""

    def __init__(self, paginator: Paginator):
        self.paginator = paginator

    async def build_lookup(self, criteria: FilterCriteria, filter_str: str) -> Dict[str, Dict[str, Any]]:
        """Query optimization_started events and key their blockers by optimization."""
        query = render_optimization_started_query(criteria, filter_str)

        def extract(data_set, page):
            return list(extract_started_blockers(data_set, page).items())

        collection = await self.paginator.execute(query, extract, dataset_label="optimization_started")
        lookup = dict(collection.rows)
        logger.debug("Built blocker lookup", optimizations=len(lookup), pages=collection.pages)
        return lookup

    def join(self, recommendations: Sequence[EventRow], lookup: Dict[str, Dict[str, Any]]) -> List[RecommendationRow]:
        results = []
        for index, row in enumerate(recommendations):
            key = optimization_key(row.event_attributes, row=index)
            blockers = lookup.get(key)
            if blockers is None:
                logger.warning(
                    "No optimization_started event found for recommendation",
                    optimizer_id=row.event_attributes.get(OPTIMIZER_ID_ATTRIBUTE),
                    num=row.event_attributes.get(OPTIMIZATION_NUM_ATTRIBUTE),
                )
                blockers = {}
            results.append(merge_blockers(row, blockers))
        return results

    async def join_recommendations(
        self,
        recommendations: Sequence[EventRow],
        criteria: FilterCriteria,
        filter_str: str,
    ) -> List[RecommendationRow]:
        """Fetch blocker context for the request and merge it into every recommendation."""
        lookup = await self.build_lookup(criteria, filter_str)
        return self.join(recommendations, lookup)
