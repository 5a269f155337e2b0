"""Tests for UQL query rendering."""
import pytest

from optimize_events.models import FilterCriteria
from optimize_events.query_builder import (
    DEFAULT_EVENTS,
    PROGRESS_EVENTS,
    build_entity_filter,
    build_filter,
    qualify_events,
    render_events_query,
    render_optimization_started_query,
    render_optimizations_query,
    render_recommendations_query,
    validate_count,
)
from shared.exceptions import InvalidArgumentError


class TestValidateCount:
    """Test result cap validation."""

    def test_no_cap_is_valid(self):
        validate_count(None)

    def test_cap_at_limit_is_valid(self):
        validate_count(1000)

    def test_cap_above_limit_is_rejected(self):
        with pytest.raises(InvalidArgumentError, match="counts higher than 1000"):
            validate_count(1001)

    def test_non_positive_cap_is_rejected(self):
        with pytest.raises(InvalidArgumentError):
            validate_count(0)


class TestQualifyEvents:
    """Test event name qualification."""

    def test_default_events_in_fixed_order(self):
        qualified = qualify_events(None, "optimize")

        assert qualified == [f"optimize:{name}" for name in DEFAULT_EVENTS]

    def test_caller_order_is_preserved(self):
        qualified = qualify_events(["stage_ended", "stage_started"], "dev")

        assert qualified == ["dev:stage_ended", "dev:stage_started"]

    def test_progress_events_are_appended(self):
        qualified = qualify_events(None, "optimize", include_progress=True)

        assert qualified[-3:] == [f"optimize:{name}" for name in PROGRESS_EVENTS]
        assert len(qualified) == len(DEFAULT_EVENTS) + len(PROGRESS_EVENTS)


class TestBuildFilter:
    """Test event predicate assembly."""

    def test_empty_criteria_give_empty_filter(self):
        assert build_filter(FilterCriteria()) == ""

    def test_optimizer_id_ignores_other_scoping(self):
        criteria = FilterCriteria(cluster_id="c-1", namespace="ns", optimizer_id="ns-wl-abc")

        assert build_filter(criteria, ["other-id"]) == 'attributes(optimize.optimization.optimizer_id) = "ns-wl-abc"'

    def test_cluster_and_resolved_ids(self):
        criteria = FilterCriteria(cluster_id="c-1", namespace="ns")

        assert build_filter(criteria, ["ns-wl-abc"]) == (
            'attributes(k8s.cluster.id) = "c-1" && '
            'attributes(optimize.optimization.optimizer_id) IN ["ns-wl-abc"]'
        )

    def test_resolved_ids_become_membership_clause(self):
        criteria = FilterCriteria(namespace="payments")

        result = build_filter(criteria, ["payments-api-111", "payments-db-222"])

        assert result == 'attributes(optimize.optimization.optimizer_id) IN ["payments-api-111", "payments-db-222"]'

    def test_explicit_optimizer_id_wins_over_resolved_ids(self):
        criteria = FilterCriteria(optimizer_id="ns-wl-abc", namespace="ns")

        result = build_filter(criteria, ["other"])

        assert result == 'attributes(optimize.optimization.optimizer_id) = "ns-wl-abc"'

    def test_values_are_quoted(self):
        criteria = FilterCriteria(cluster_id='we"ird')

        assert build_filter(criteria) == 'attributes(k8s.cluster.id) = "we\\"ird"'

    def test_non_ascii_values_are_kept(self):
        assert build_filter(FilterCriteria(cluster_id="café")) == 'attributes(k8s.cluster.id) = "café"'


class TestBuildEntityFilter:
    """Test entity lookup predicate assembly."""

    def test_requires_namespace_or_workload(self):
        with pytest.raises(InvalidArgumentError):
            build_entity_filter(FilterCriteria(cluster_id="c-1"))

    def test_clause_order(self):
        criteria = FilterCriteria(cluster_id="c-1", namespace="ns", workload_name="wl")

        assert build_entity_filter(criteria) == (
            'attributes("k8s.namespace.name") = "ns" && '
            'attributes("k8s.workload.name") = "wl" && '
            'attributes("k8s.cluster.id") = "c-1"'
        )


class TestRenderEventsQuery:
    """Test events query rendering."""

    def test_full_query(self):
        criteria = FilterCriteria(since="-7d", until="2023-07-31", events=["stage_started", "stage_ended"], count=5)

        query = render_events_query(criteria, 'attributes(optimize.optimization.optimizer_id) = "x"')

        assert query == (
            "\n"
            "SINCE -7d\n"
            "UNTIL 2023-07-31\n"
            "FETCH events(\n"
            "\t\toptimize:stage_started,\n"
            "\t\toptimize:stage_ended\n"
            "\t)\n"
            '\t[attributes(optimize.optimization.optimizer_id) = "x"]\n'
            "\t{attributes, timestamp}\n"
            "LIMITS events.count(5)\n"
            "ORDER events.asc()\n"
        )

    def test_minimal_query_omits_optional_clauses(self):
        criteria = FilterCriteria(events=["stage_started"])

        query = render_events_query(criteria, "")

        assert query == (
            "\n"
            "FETCH events(\n"
            "\t\toptimize:stage_started\n"
            "\t)\n"
            "\t{attributes, timestamp}\n"
            "ORDER events.asc()\n"
        )

    def test_rendering_is_deterministic(self):
        criteria = FilterCriteria(namespace="payments", since="-7d", include_progress=True)
        filter_str = build_filter(criteria, ["payments-api-111"])

        first = render_events_query(criteria, filter_str)
        second = render_events_query(FilterCriteria(**criteria.model_dump()), build_filter(criteria, ["payments-api-111"]))

        assert first == second


class TestRenderRecommendationsQuery:
    """Test recommendation queries."""

    def test_verified_only(self):
        query = render_recommendations_query(FilterCriteria(since="-52w", count=1), "")

        assert query == (
            "\n"
            "SINCE -52w\n"
            "FETCH events(\n"
            "\t\toptimize:recommendation_verified\n"
            "\t)\n"
            "\t{attributes, timestamp}\n"
            "LIMITS events.count(1)\n"
            "ORDER events.asc()\n"
        )

    def test_include_invalidated(self):
        query = render_recommendations_query(FilterCriteria(include_invalidated=True), "")

        assert (
            "FETCH events(\n"
            "\t\toptimize:recommendation_identified,\n"
            "\t\toptimize:recommendation_invalidated,\n"
            "\t\toptimize:recommendation_verified\n"
            "\t)\n"
        ) in query

    def test_optimization_started_is_never_capped(self):
        criteria = FilterCriteria(since="-52w", count=1)

        query = render_optimization_started_query(criteria, 'attributes(k8s.cluster.id) = "c-1"')

        assert query == (
            "\n"
            "SINCE -52w\n"
            "FETCH events(\n"
            "\t\toptimize:optimization_started\n"
            "\t)\n"
            '\t[attributes(k8s.cluster.id) = "c-1"]\n'
            "\t{attributes, timestamp}\n"
            "ORDER events.asc()\n"
        )


class TestRenderOptimizationsQuery:
    """Test entity lookup rendering."""

    def test_entity_lookup(self):
        criteria = FilterCriteria(namespace="payments", since="-7d", solution_name="dev")

        assert render_optimizations_query(criteria) == (
            "\n"
            "SINCE -7d\n"
            "FETCH attributes(optimize.optimization.optimizer_id)\n"
            'FROM entities(dev:optimization)[attributes("k8s.namespace.name") = "payments"]\n'
        )
