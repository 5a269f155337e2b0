"""Decoding of UQL JSON responses into data sets.

A UQL response is a JSON array of chunks. ``model`` chunks describe the
shape of the data, ``data`` chunks carry the rows of one data set and
``error`` chunks report problems encountered while producing the data:

    [
      {"type": "model", "model": {"name": "m:main", "fields": [...]}},
      {"type": "data", "model": {"$model": "m:main"}, "dataset": "d:main",
       "_links": {"next": {"href": "..."}}, "data": [[...]]},
      {"type": "error", "error": {"title": "...", "detail": "..."}}
    ]

Cells of ``complex`` fields are either inline (a list of rows, decoded to
``ComplexData``) or a reference to another data chunk
(``{"$dataset": "d:events-1"}``, decoded to the referenced ``DataSet``).
Cells of ``timestamp`` fields are decoded to ``datetime``.
"""
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from uql_integration.models import ComplexData, DataSet, QueryError, QueryResponse

MAIN_DATA_SET = "d:main"

_FRACTION = re.compile(r"\.(\d+)")


def parse_timestamp(value: Any) -> Any:
    """Parse an RFC 3339 timestamp, leaving unparseable values untouched."""
    if not isinstance(value, str):
        return value
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # datetime only keeps microseconds, UQL may send nanoseconds
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return value


def _register_models(model: Dict[str, Any], models: Dict[str, Dict[str, Any]]):
    name = model.get("name")
    if name:
        models[name] = model
    for field in model.get("fields", []) or []:
        nested = field.get("model")
        if isinstance(nested, dict):
            _register_models(nested, models)


def _links(chunk: Dict[str, Any]) -> Dict[str, str]:
    links = {}
    for link_name, link in (chunk.get("_links") or {}).items():
        if isinstance(link, dict) and link.get("href"):
            links[link_name] = link["href"]
        elif isinstance(link, str):
            links[link_name] = link
    return links


class _Decoder:
    def __init__(self, chunks: List[Dict[str, Any]]):
        self.models: Dict[str, Dict[str, Any]] = {}
        self.raw_data: Dict[str, Dict[str, Any]] = {}
        self.decoded: Dict[str, DataSet] = {}
        self.order: List[str] = []
        self.errors: List[QueryError] = []

        for chunk in chunks:
            if not isinstance(chunk, dict):
                continue
            chunk_type = chunk.get("type")
            if chunk_type == "model" and isinstance(chunk.get("model"), dict):
                _register_models(chunk["model"], self.models)
            elif chunk_type == "data" and chunk.get("dataset"):
                self.raw_data[chunk["dataset"]] = chunk
                self.order.append(chunk["dataset"])
            elif chunk_type == "error":
                error = chunk.get("error") or {}
                self.errors.append(QueryError(
                    type=error.get("type"),
                    title=error.get("title") or "",
                    detail=error.get("detail") or "",
                ))

    def data_set(self, name: str) -> Optional[DataSet]:
        if name in self.decoded:
            return self.decoded[name]
        chunk = self.raw_data.get(name)
        if chunk is None:
            return None

        model_ref = (chunk.get("model") or {}).get("$model")
        model = self.models.get(model_ref) if model_ref else None
        fields = (model or {}).get("fields", []) or []

        data_set = DataSet(name=name, links=_links(chunk))
        # registered before decoding rows so self references terminate
        self.decoded[name] = data_set
        data_set.data = [self._row(row, fields) for row in chunk.get("data") or []]
        return data_set

    def _row(self, row: Any, fields: List[Dict[str, Any]]) -> List[Any]:
        if not isinstance(row, list):
            return [row]
        return [
            self._cell(cell, fields[index] if index < len(fields) else None)
            for index, cell in enumerate(row)
        ]

    def _cell(self, cell: Any, field: Optional[Dict[str, Any]]) -> Any:
        if isinstance(cell, dict) and "$dataset" in cell:
            referenced = self.data_set(cell["$dataset"])
            return referenced if referenced is not None else DataSet(name=cell["$dataset"])
        if field is None:
            return cell

        field_type = field.get("type")
        if field_type == "timestamp":
            return parse_timestamp(cell)
        if field_type == "complex" and isinstance(cell, list):
            nested_fields = (field.get("model") or {}).get("fields", []) or []
            return ComplexData(data=[self._row(row, nested_fields) for row in cell])
        return cell


def parse_response(payload: Any) -> QueryResponse:
    """Decode a UQL JSON payload into a QueryResponse."""
    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        return QueryResponse()

    decoder = _Decoder(payload)
    main_name = MAIN_DATA_SET if MAIN_DATA_SET in decoder.raw_data else (decoder.order[0] if decoder.order else None)
    main = decoder.data_set(main_name) if main_name else None
    return QueryResponse(main_data_set=main, query_errors=decoder.errors)
