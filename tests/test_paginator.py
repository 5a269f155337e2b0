"""Tests for cursor pagination."""
import pytest

from factories import event_cells, events_page, main_response
from optimize_events.extractor import extract_events
from shared.exceptions import DataShapeError, RemoteQueryError
from uql_integration.models import DataSet, QueryError, QueryResponse


def _pages(count: int):
    """Build ``count`` events pages, all but the last carrying a "next" link."""
    pages = []
    for index in range(count):
        links = {"next": f"/continue?page={index + 2}"} if index < count - 1 else {}
        pages.append(events_page(
            [event_cells({"seq": f"{index}-{row}"}, minutes=row) for row in range(2)],
            links=links,
            name=f"d:events-{index + 1}",
        ))
    return pages


class TestPaginator:
    """Test page walking."""

    async def test_concatenates_pages_in_order(self, client, paginator):
        pages = _pages(3)
        client.execute_query.return_value = main_response(pages[0])
        client.continue_query.side_effect = [main_response(pages[1]), main_response(pages[2])]

        collection = await paginator.execute("query", extract_events, "events")

        expected = [row.event_attributes for page in pages for row in extract_events(page)]
        assert [row.event_attributes for row in collection.rows] == expected
        assert collection.pages == 3
        assert collection.last_data_set is pages[2]
        assert client.execute_query.await_count + client.continue_query.await_count == 3

    async def test_each_round_trip_advances(self, client, paginator):
        pages = _pages(3)
        client.execute_query.return_value = main_response(pages[0])
        client.continue_query.side_effect = [main_response(pages[1]), main_response(pages[2])]

        await paginator.execute("query", extract_events, "events")

        continued_from = [call.args[0] for call in client.continue_query.await_args_list]
        assert continued_from == [pages[0], pages[1]]
        assert all(call.args[1] == "next" for call in client.continue_query.await_args_list)

    async def test_pagination_skipped_when_disabled(self, client, paginator):
        pages = _pages(2)
        client.execute_query.return_value = main_response(pages[0])

        collection = await paginator.execute("query", extract_events, "events", paginate=False)

        assert len(collection.rows) == 2
        client.continue_query.assert_not_awaited()

    async def test_empty_first_page(self, client, paginator):
        client.execute_query.return_value = QueryResponse()

        collection = await paginator.execute("query", extract_events, "events")

        assert collection.pages == 0
        assert collection.rows == []
        assert collection.last_data_set is None

    async def test_partial_errors_are_not_fatal(self, client, paginator):
        page = _pages(1)[0]
        errors = [QueryError(title="Partial result", detail="one shard timed out")]
        client.execute_query.return_value = main_response(page, errors=errors)

        collection = await paginator.execute("query", extract_events, "events")

        assert len(collection.rows) == 2

    async def test_continuation_without_main_stops(self, client, paginator):
        pages = _pages(2)
        client.execute_query.return_value = main_response(pages[0])
        client.continue_query.return_value = QueryResponse()

        collection = await paginator.execute("query", extract_events, "events")

        assert len(collection.rows) == 2
        assert collection.pages == 1

    async def test_continuation_shape_error_names_page(self, client, paginator):
        pages = _pages(2)
        client.execute_query.return_value = main_response(pages[0])
        client.continue_query.return_value = QueryResponse(main_data_set=DataSet(name="d:main", data=[]))

        with pytest.raises(DataShapeError) as exc_info:
            await paginator.execute("query", extract_events, "events")

        assert exc_info.value.page == 2

    async def test_continuation_failure_is_remote_error(self, client, paginator):
        pages = _pages(2)
        client.execute_query.return_value = main_response(pages[0])
        client.continue_query.side_effect = ConnectionError("reset by peer")

        with pytest.raises(RemoteQueryError) as exc_info:
            await paginator.execute("query", extract_events, "events")

        assert exc_info.value.page == 2
        assert isinstance(exc_info.value.cause, ConnectionError)

    async def test_execution_failure_is_remote_error(self, client, paginator):
        client.execute_query.side_effect = TimeoutError("timed out")

        with pytest.raises(RemoteQueryError, match="execution of events query failed"):
            await paginator.execute("query", extract_events, "events")

    async def test_flat_pages(self, client, paginator):
        first = DataSet(name="d:main", data=[["a"]], links={"next": "/continue"})
        second = DataSet(name="d:main", data=[["b"]])
        client.execute_query.return_value = QueryResponse(main_data_set=first)
        client.continue_query.return_value = QueryResponse(main_data_set=second)

        collection = await paginator.execute(
            "query", lambda data_set, page: [row[0] for row in data_set.data], "optimization", nested=False
        )

        assert collection.rows == ["a", "b"]
