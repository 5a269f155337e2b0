"""Builders for synthetic UQL pages used across the test suite."""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from uql_integration.models import ComplexData, DataSet, QueryError, QueryResponse

BASE_TIME = datetime(2023, 7, 31, 10, 0, 0, tzinfo=timezone.utc)


def attributes_cell(attributes: Dict[str, Any]) -> ComplexData:
    return ComplexData(data=[[name, value] for name, value in attributes.items()])


def event_cells(attributes: Dict[str, Any], minutes: int = 0) -> List[Any]:
    return [attributes_cell(attributes), BASE_TIME + timedelta(minutes=minutes)]


def events_page(
    rows: List[List[Any]],
    links: Optional[Dict[str, str]] = None,
    name: str = "d:events-1",
) -> DataSet:
    return DataSet(name=name, data=rows, links=links or {})


def main_response(data_set: Optional[DataSet], errors: Optional[List[QueryError]] = None) -> QueryResponse:
    """Wrap an events page into a response whose main data set references it."""
    main = DataSet(name="d:main", data=[[data_set]]) if data_set is not None else None
    return QueryResponse(main_data_set=main, query_errors=errors or [])


def entity_response(optimizer_ids: List[Any], links: Optional[Dict[str, str]] = None) -> QueryResponse:
    main = DataSet(name="d:main", data=[[optimizer_id] for optimizer_id in optimizer_ids], links=links or {})
    return QueryResponse(main_data_set=main)


def recommendation_attributes(optimizer_id: str, num: str, **extra: Any) -> Dict[str, Any]:
    attributes = {
        "optimize.optimization.optimizer_id": optimizer_id,
        "optimize.optimization.num": num,
        "appd.event.type": "optimize:recommendation_verified",
        "optimize.recommendation.state": "verified",
    }
    attributes.update(extra)
    return attributes
