"""Resolution of namespace/workload criteria into optimizer ids."""
from typing import List
import structlog

from optimize_events.extractor import extract_optimizer_ids
from optimize_events.models import FilterCriteria
from optimize_events.paginator import Paginator
from optimize_events.query_builder import render_optimizations_query

logger = structlog.get_logger()


class EntityResolver:
    """Looks up optimization entities matching namespace/workload/cluster criteria."""

    def __init__(self, paginator: Paginator):
        self.paginator = paginator

    async def resolve(self, criteria: FilterCriteria) -> List[str]:
        """Return the ids of all matching optimizers, across all pages.

        An empty list means no optimization entity matched; callers should
        stop rather than query events.
        """
        # raises InvalidArgumentError before any query when neither namespace nor workload is set
        query = render_optimizations_query(criteria)

        collection = await self.paginator.execute(
            query,
            extract_optimizer_ids,
            dataset_label="optimization",
            nested=False,
        )
        logger.info(
            "Resolved optimizer ids",
            namespace=criteria.namespace,
            workload_name=criteria.workload_name,
            cluster_id=criteria.cluster_id,
            count=len(collection.rows),
        )
        return list(collection.rows)
