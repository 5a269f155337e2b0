"""Conversion of UQL result pages into typed event rows."""
from datetime import datetime
from typing import Any, Dict, List, Optional
import structlog

from optimize_events.models import EventRow
from optimize_events.query_builder import OPTIMIZATION_NUM_ATTRIBUTE, OPTIMIZER_ID_ATTRIBUTE
from shared.exceptions import DataShapeError
from uql_integration.models import ComplexData, DataSet

logger = structlog.get_logger()

IGNORED_BLOCKERS_PREFIX = "optimize.ignored_blockers"


def flatten_attributes(
    attributes: ComplexData,
    page: Optional[int] = None,
    row: Optional[int] = None,
    dataset: Optional[str] = None,
) -> Dict[str, Any]:
    """Flatten an attribute bag of [key, value] pairs. Later duplicates win."""
    result: Dict[str, Any] = {}
    for pair in attributes.data:
        if len(pair) != 2:
            raise DataShapeError(
                "attribute pair has the wrong arity",
                page=page,
                row=row,
                dataset=dataset,
                expected="2 elements",
                actual=f"{len(pair)} elements",
            )
        key, value = pair
        if not isinstance(key, str):
            raise DataShapeError(
                "attribute name has the wrong type",
                page=page,
                row=row,
                dataset=dataset,
                expected="str",
                actual=type(key).__name__,
            )
        result[key] = value
    return result


def unwrap_events_data_set(main: DataSet, page: int) -> DataSet:
    """Return the nested events data set carried in the first cell of a main data set."""
    if len(main.data) < 1:
        raise DataShapeError("main dataset has no rows", page=page, dataset=main.name)
    if len(main.data[0]) < 1:
        raise DataShapeError("main dataset first row has no columns", page=page, dataset=main.name)
    cell = main.data[0][0]
    if not isinstance(cell, DataSet):
        raise DataShapeError(
            "main dataset first row first column is not a nested data set",
            page=page,
            dataset=main.name,
            expected="DataSet",
            actual=type(cell).__name__,
        )
    return cell


def _row_attributes(row: List[Any], index: int, page: Optional[int], dataset: str) -> Dict[str, Any]:
    if len(row) < 1:
        raise DataShapeError("row has no columns", page=page, row=index, dataset=dataset)
    attributes = row[0]
    if not isinstance(attributes, ComplexData):
        raise DataShapeError(
            "attributes column has the wrong type",
            page=page,
            row=index,
            dataset=dataset,
            expected="ComplexData",
            actual=type(attributes).__name__,
        )
    return flatten_attributes(attributes, page=page, row=index, dataset=dataset)


def extract_events(data_set: Optional[DataSet], page: Optional[int] = None) -> List[EventRow]:
    """Convert the rows of an events data set into EventRows, in row order."""
    if data_set is None:
        return []

    results = []
    for index, row in enumerate(data_set.data):
        if len(row) < 2:
            raise DataShapeError(
                "event row has too few columns",
                page=page,
                row=index,
                dataset=data_set.name,
                expected="2 columns",
                actual=f"{len(row)} columns",
            )
        attributes = _row_attributes(row, index, page, data_set.name)
        timestamp = row[1]
        if not isinstance(timestamp, datetime):
            raise DataShapeError(
                "timestamp column has the wrong type",
                page=page,
                row=index,
                dataset=data_set.name,
                expected="datetime",
                actual=type(timestamp).__name__,
            )
        results.append(EventRow(timestamp=timestamp, event_attributes=attributes))
    return results


def optimization_key(attributes: Dict[str, Any], page: Optional[int] = None, row: Optional[int] = None) -> str:
    """Build the "<optimizer_id>-<optimization_num>" key joining recommendations with their optimization."""
    parts = []
    for name in (OPTIMIZER_ID_ATTRIBUTE, OPTIMIZATION_NUM_ATTRIBUTE):
        value = attributes.get(name)
        if not isinstance(value, str):
            raise DataShapeError(
                f"attribute {name} is missing or not a string",
                page=page,
                row=row,
                expected="str",
                actual=type(value).__name__,
            )
        parts.append(value)
    return "-".join(parts)


def extract_started_blockers(data_set: Optional[DataSet], page: Optional[int] = None) -> Dict[str, Dict[str, Any]]:
    """Group the ignored blocker attributes of optimization_started events by optimization key."""
    results: Dict[str, Dict[str, Any]] = {}
    if data_set is None:
        return results

    for index, row in enumerate(data_set.data):
        attributes = _row_attributes(row, index, page, data_set.name)
        blockers = {
            name: value
            for name, value in attributes.items()
            if name.startswith(IGNORED_BLOCKERS_PREFIX)
        }
        results[optimization_key(attributes, page=page, row=index)] = blockers
    return results


def extract_optimizer_ids(data_set: Optional[DataSet], page: Optional[int] = None) -> List[str]:
    """Read the optimizer id column of an optimization entity lookup page."""
    if data_set is None:
        return []

    results = []
    for index, row in enumerate(data_set.data):
        if len(row) < 1:
            raise DataShapeError("optimization data row has no columns", page=page, row=index, dataset=data_set.name)
        optimizer_id = row[0]
        if not isinstance(optimizer_id, str):
            raise DataShapeError(
                f"optimization data row value {optimizer_id!r} could not be converted to string",
                page=page,
                row=index,
                dataset=data_set.name,
                expected="str",
                actual=type(optimizer_id).__name__,
            )
        results.append(optimizer_id)
    return results
