"""Optimize events request/response models."""
from pydantic import BaseModel
from typing import Optional, List, Dict, Any, Union
from datetime import datetime

from uql_integration.models import DataSet


class FilterCriteria(BaseModel):
    """Filters for an events or recommendations request."""
    cluster_id: Optional[str] = None
    namespace: Optional[str] = None
    workload_name: Optional[str] = None
    optimizer_id: Optional[str] = None
    since: Optional[str] = None  # relative (-7d) or absolute, passed through verbatim
    until: Optional[str] = None
    count: Optional[int] = None  # None means paginate to exhaustion
    events: Optional[List[str]] = None  # None means the default event list
    include_progress: bool = False
    include_invalidated: bool = False
    solution_name: str = "optimize"

    def needs_entity_lookup(self) -> bool:
        """Whether optimizer ids have to be resolved from namespace/workload."""
        return not self.optimizer_id and bool(self.namespace or self.workload_name)


class EventRow(BaseModel):
    """One event with its flattened attribute bag."""
    timestamp: datetime
    event_attributes: Dict[str, Any]


class RecommendationRow(EventRow):
    """Recommendation event joined with the blockers of its optimization."""
    blockers_attributes: Dict[str, Any] = {}
    blockers_present: bool = False
    blockers: List[str] = []


class EventsResult(BaseModel):
    """Result of an events or recommendations request."""
    items: List[Union[RecommendationRow, EventRow]] = []
    total: int = 0
    status: Optional[str] = None  # set when the request short-circuited
    cursor: Optional[DataSet] = None  # last events page, used to follow


class PageCollection(BaseModel):
    """Rows aggregated over all pages of a query."""
    rows: List[Any] = []
    pages: int = 0
    last_data_set: Optional[DataSet] = None
