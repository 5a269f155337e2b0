"""UQL response models."""
from pydantic import BaseModel
from typing import List, Dict, Any, Optional


class ComplexData(BaseModel):
    """Inline complex cell, a list of [key, value] pairs."""
    data: List[List[Any]] = []


class DataSet(BaseModel):
    """One page of rows plus its named continuation links."""
    name: str
    data: List[List[Any]] = []
    links: Dict[str, str] = {}

    def has_link(self, link_name: str) -> bool:
        return link_name in self.links


class QueryError(BaseModel):
    """Error reported by the query service next to (possibly partial) data."""
    type: Optional[str] = None
    title: str = ""
    detail: str = ""


class QueryResponse(BaseModel):
    """Decoded response of an execute or continue call."""
    main_data_set: Optional[DataSet] = None
    query_errors: List[QueryError] = []

    def main(self) -> Optional[DataSet]:
        return self.main_data_set

    def has_errors(self) -> bool:
        return len(self.query_errors) > 0

    def errors(self) -> List[QueryError]:
        return self.query_errors
