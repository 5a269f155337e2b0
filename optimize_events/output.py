"""Rendering of events and recommendations for the terminal."""
import json
from typing import Any, Callable, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.table import Table
from rich.text import Text

from optimize_events.models import EventRow, EventsResult
from optimize_events.query_builder import OPTIMIZER_ID_ATTRIBUTE

Field = Tuple[str, Callable[[EventRow], Any]]

OUTPUT_FORMATS = ("table", "detail", "json")


def _attribute(name: str) -> Callable[[EventRow], Any]:
    return lambda row: row.event_attributes.get(name)


def _timestamp(row: EventRow) -> str:
    return row.timestamp.isoformat()


EVENT_FIELDS: List[Field] = [
    ("OptimizerId", _attribute(OPTIMIZER_ID_ATTRIBUTE)),
    ("EventType", _attribute("appd.event.type")),
    ("Timestamp", _timestamp),
]

EVENT_DETAIL_FIELDS: List[Field] = EVENT_FIELDS + [
    ("Attributes", lambda row: row.event_attributes),
]

RECOMMENDATION_FIELDS: List[Field] = [
    ("OptimizerId", _attribute(OPTIMIZER_ID_ATTRIBUTE)),
    ("State", _attribute("optimize.recommendation.state")),
    ("CPUcores", _attribute("optimize.recommendation.settings.cpu")),
    ("MemoryGiB", _attribute("optimize.recommendation.settings.memory")),
    ("Blockers", lambda row: "true" if row.blockers_present else "false"),
    ("Timestamp", _timestamp),
]

RECOMMENDATION_DETAIL_FIELDS: List[Field] = [
    ("OptimizerId", _attribute(OPTIMIZER_ID_ATTRIBUTE)),
    ("State", _attribute("optimize.recommendation.state")),
    ("CPUcores", _attribute("optimize.recommendation.settings.cpu")),
    ("MemoryGiB", _attribute("optimize.recommendation.settings.memory")),
    ("Blockers", lambda row: row.blockers),
    ("BlockersAttributes", lambda row: row.blockers_attributes),
    ("Attributes", lambda row: row.event_attributes),
    ("Timestamp", _timestamp),
]


def format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


class OutputRenderer:
    """Prints results as a table, per-item details or JSON."""

    def __init__(
        self,
        output_format: str = "table",
        fields: Sequence[Field] = EVENT_FIELDS,
        detail_fields: Sequence[Field] = EVENT_DETAIL_FIELDS,
        console: Optional[Console] = None,
    ):
        if output_format not in OUTPUT_FORMATS:
            raise ValueError(f"unsupported output format {output_format!r}")
        self.output_format = output_format
        self.fields = list(fields)
        self.detail_fields = list(detail_fields)
        self.console = console or Console()

    def status(self, message: str):
        self.console.print(message, markup=False, highlight=False)

    def render(self, result: EventsResult):
        """Render a complete result set."""
        if result.status:
            self.status(result.status)
            return
        self._render_rows(result.items, show_header=True)

    def render_increment(self, rows: List[EventRow]):
        """Render a batch of followed events without headers."""
        self._render_rows(rows, show_header=False)

    def _render_rows(self, rows: Sequence[EventRow], show_header: bool):
        if self.output_format == "json":
            self.console.print_json(data={
                "items": [row.model_dump(mode="json") for row in rows],
                "total": len(rows),
            })
        elif self.output_format == "detail":
            for row in rows:
                table = Table(show_header=False, box=None)
                table.add_column("Field", style="bold")
                table.add_column("Value", overflow="fold")
                for name, getter in self.detail_fields:
                    table.add_row(name, Text(format_value(getter(row))))
                self.console.print(table)
        else:
            table = Table(show_header=show_header, box=None)
            for name, _ in self.fields:
                table.add_column(name)
            for row in rows:
                table.add_row(*(Text(format_value(getter(row))) for _, getter in self.fields))
            self.console.print(table)
