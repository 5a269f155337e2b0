"""UQL query rendering for optimize events and recommendations.

Every render function is pure: the same criteria always produce the same
query text. ``since``/``until`` values are passed through verbatim, the
query service interprets relative (``-7d``) and absolute times.
"""
import json
from typing import List, Optional, Sequence

from optimize_events.models import FilterCriteria
from shared.exceptions import InvalidArgumentError

MAX_COUNT = 1000

OPTIMIZER_ID_ATTRIBUTE = "optimize.optimization.optimizer_id"
OPTIMIZATION_NUM_ATTRIBUTE = "optimize.optimization.num"
CLUSTER_ID_ATTRIBUTE = "k8s.cluster.id"

DEFAULT_EVENTS = [
    "optimization_baselined",
    "optimization_started",
    "optimization_ended",
    "stage_started",
    "stage_ended",
    "experiment_started",
    "experiment_ended",
    "experiment_deployment_started",
    "experiment_deployment_completed",
    "experiment_measurement_started",
    "experiment_measurement_completed",
    "experiment_described",
    "recommendation_identified",
    "recommendation_verified",
    "recommendation_invalidated",
]

PROGRESS_EVENTS = [
    "optimization_progress",
    "stage_progress",
    "experiment_progress",
]

_EVENT_SEPARATOR = ",\n\t\t"


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def validate_count(count: Optional[int], max_count: int = MAX_COUNT):
    """Reject result caps the query service does not support."""
    if count is None:
        return
    if count > max_count:
        raise InvalidArgumentError(f"counts higher than {max_count} are not supported")
    if count < 1:
        raise InvalidArgumentError(f"count must be at least 1, got {count}")


def qualify_events(events: Optional[Sequence[str]], solution_name: str, include_progress: bool = False) -> List[str]:
    """Prefix event names with the solution defining their types, keeping order."""
    names = list(events) if events is not None else list(DEFAULT_EVENTS)
    if include_progress:
        names.extend(PROGRESS_EVENTS)
    return [f"{solution_name}:{name}" for name in names]


def build_filter(criteria: FilterCriteria, optimizer_ids: Optional[Sequence[str]] = None) -> str:
    """Build the event predicate.

    An explicit optimizer id is the only clause when set; otherwise the
    cluster id and ``optimizer_ids`` resolved from namespace/workload
    criteria are combined.
    """
    if criteria.optimizer_id:
        return f"attributes({OPTIMIZER_ID_ATTRIBUTE}) = {_quote(criteria.optimizer_id)}"

    clauses = []
    if criteria.cluster_id:
        clauses.append(f"attributes({CLUSTER_ID_ATTRIBUTE}) = {_quote(criteria.cluster_id)}")
    if optimizer_ids is not None:
        members = ", ".join(_quote(optimizer_id) for optimizer_id in optimizer_ids)
        clauses.append(f"attributes({OPTIMIZER_ID_ATTRIBUTE}) IN [{members}]")
    return " && ".join(clauses)


def build_entity_filter(criteria: FilterCriteria) -> str:
    """Build the predicate of the optimization entity lookup."""
    clauses = []
    if criteria.namespace:
        clauses.append(f'attributes("k8s.namespace.name") = {_quote(criteria.namespace)}')
    if criteria.workload_name:
        clauses.append(f'attributes("k8s.workload.name") = {_quote(criteria.workload_name)}')
    if not clauses:
        raise InvalidArgumentError(
            "optimizations query must at least filter on namespace or workload name, otherwise it can be skipped"
        )
    if criteria.cluster_id:
        clauses.append(f'attributes("k8s.cluster.id") = {_quote(criteria.cluster_id)}')
    return " && ".join(clauses)


def _time_range(criteria: FilterCriteria) -> str:
    text = ""
    if criteria.since:
        text += f"SINCE {criteria.since}\n"
    if criteria.until:
        text += f"UNTIL {criteria.until}\n"
    return text


def _fetch_tail(filter_str: str, count: Optional[int]) -> str:
    text = "\n\t)\n\t"
    if filter_str:
        text += f"[{filter_str}]\n\t"
    text += "{attributes, timestamp}\n"
    if count is not None:
        text += f"LIMITS events.count({count})\n"
    return text + "ORDER events.asc()\n"


def render_events_query(criteria: FilterCriteria, filter_str: str) -> str:
    events = qualify_events(criteria.events, criteria.solution_name, criteria.include_progress)
    return (
        "\n"
        + _time_range(criteria)
        + "FETCH events(\n\t\t"
        + _EVENT_SEPARATOR.join(events)
        + _fetch_tail(filter_str, criteria.count)
    )


def render_recommendations_query(criteria: FilterCriteria, filter_str: str) -> str:
    names = ["recommendation_verified"]
    if criteria.include_invalidated:
        names = ["recommendation_identified", "recommendation_invalidated"] + names
    return (
        "\n"
        + _time_range(criteria)
        + "FETCH events(\n\t\t"
        + _EVENT_SEPARATOR.join(f"{criteria.solution_name}:{name}" for name in names)
        + _fetch_tail(filter_str, criteria.count)
    )


def render_optimization_started_query(criteria: FilterCriteria, filter_str: str) -> str:
    # blocker context is needed for every recommendation, so never capped
    return (
        "\n"
        + _time_range(criteria)
        + f"FETCH events(\n\t\t{criteria.solution_name}:optimization_started"
        + _fetch_tail(filter_str, None)
    )


def render_optimizations_query(criteria: FilterCriteria) -> str:
    """Render the entity lookup returning optimizer ids for namespace/workload criteria."""
    return (
        "\n"
        + _time_range(criteria)
        + f"FETCH attributes({OPTIMIZER_ID_ATTRIBUTE})\n"
        + f"FROM entities({criteria.solution_name}:optimization)[{build_entity_filter(criteria)}]\n"
    )
