"""Cursor pagination over UQL result pages."""
from typing import Any, Callable, List, Optional
import structlog

from optimize_events.extractor import unwrap_events_data_set
from optimize_events.models import PageCollection
from shared.exceptions import RemoteQueryError
from uql_integration.models import DataSet, QueryResponse

logger = structlog.get_logger()

NEXT_LINK = "next"

Extractor = Callable[[Optional[DataSet], Optional[int]], List[Any]]


def log_partial_errors(response: QueryResponse, action: str, dataset_label: str, page: Optional[int] = None):
    """Log errors reported alongside otherwise usable data."""
    if not response.has_errors():
        return
    logger.warning(
        f"{action} of {dataset_label} query encountered errors. Returned data may not be complete!",
        page=page,
    )
    for error in response.errors():
        logger.warning(error.title, detail=error.detail, page=page)


class Paginator:
    """Walks the "next" links of a query until the last page."""

    def __init__(self, client):
        self.client = client

    async def execute(
        self,
        query: str,
        extract: Extractor,
        dataset_label: str,
        paginate: bool = True,
        nested: bool = True,
    ) -> PageCollection:
        """Execute a query and collect the rows of all of its pages."""
        try:
            response = await self.client.execute_query(query)
        except RemoteQueryError:
            raise
        except Exception as e:
            raise RemoteQueryError(f"execution of {dataset_label} query failed", cause=e) from e
        return await self.collect(response, extract, dataset_label, paginate=paginate, nested=nested)

    async def collect(
        self,
        response: QueryResponse,
        extract: Extractor,
        dataset_label: str,
        paginate: bool = True,
        nested: bool = True,
    ) -> PageCollection:
        """Collect rows starting from the first page of a query response.

        With ``nested`` the rows live in a data set referenced from the first
        cell of the main data set (events); otherwise the main data set holds
        the rows itself (entity lookups). With ``paginate`` false only the
        first page is read even if it carries a "next" link.
        """
        log_partial_errors(response, "Execution", dataset_label, page=1)

        main = response.main()
        if main is None or (nested and len(main.data) < 1):
            logger.debug("Query returned no data", dataset_label=dataset_label)
            return PageCollection()

        data_set = unwrap_events_data_set(main, 1) if nested else main
        rows = list(extract(data_set, 1))
        pages = 1

        has_next = paginate and data_set.has_link(NEXT_LINK)
        page = 2
        while has_next:
            try:
                response = await self.client.continue_query(data_set, NEXT_LINK)
            except Exception as e:
                raise RemoteQueryError(f"continuation of {dataset_label} query failed", page=page, cause=e) from e
            log_partial_errors(response, "Continuation", dataset_label, page=page)

            main = response.main()
            if main is None:
                logger.error(
                    f"Continuation of {dataset_label} query has nil main data. Returned data may not be complete!",
                    page=page,
                )
                break

            data_set = unwrap_events_data_set(main, page) if nested else main
            rows.extend(extract(data_set, page))
            pages += 1
            has_next = data_set.has_link(NEXT_LINK)
            page += 1

        logger.debug("Collected query pages", dataset_label=dataset_label, pages=pages, rows=len(rows))
        return PageCollection(rows=rows, pages=pages, last_data_set=data_set)
