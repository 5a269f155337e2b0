"""Live tail of events through the "follow" link of the last events page."""
import asyncio
from typing import Awaitable, Callable, List, NamedTuple, Optional
import structlog

from optimize_events.extractor import extract_events, unwrap_events_data_set
from optimize_events.models import EventRow
from optimize_events.paginator import log_partial_errors
from shared.exceptions import DataShapeError, RemoteQueryError
from uql_integration.models import DataSet

logger = structlog.get_logger()

FOLLOW_LINK = "follow"


class FollowResult(NamedTuple):
    data_set: DataSet
    rows: List[EventRow] = []
    cursor_exhausted: bool = False
    error: Optional[BaseException] = None


class EventFollower:
    """Polls the follow link until cancelled.

    One poll cycle runs at a time in a background task and hands its result
    over through a single-slot mailbox. Pages with new rows are drained
    right away; once the cursor comes back empty the next poll waits for
    ``interval`` seconds.
    """

    def __init__(
        self,
        client,
        interval: float = 60.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.interval = interval
        self._sleep = sleep

    async def poll(self, data_set: DataSet) -> FollowResult:
        """Fetch whatever arrived on the follow link since the previous poll."""
        try:
            response = await self.client.continue_query(data_set, FOLLOW_LINK)
        except Exception as e:
            raise RemoteQueryError("follow continuation of events query failed", cause=e) from e
        log_partial_errors(response, "Following", "events")

        main = response.main()
        if main is None:
            raise DataShapeError("follow response has no main data set", dataset=data_set.name)

        followed = unwrap_events_data_set(main, page=None)
        rows = extract_events(followed)
        if not followed.has_link(FOLLOW_LINK):
            logger.debug("Follow page has no follow link, keeping the previous cursor", dataset=followed.name)
            followed = data_set
        return FollowResult(data_set=followed, rows=rows, cursor_exhausted=len(rows) == 0)

    async def _cycle(self, previous: FollowResult, mailbox: asyncio.Queue):
        try:
            if previous.cursor_exhausted:
                await self._sleep(self.interval)
            outcome = await self.poll(previous.data_set)
        except Exception as e:
            outcome = FollowResult(data_set=previous.data_set, error=e)
        await mailbox.put(outcome)

    async def follow(
        self,
        data_set: DataSet,
        on_batch: Callable[[List[EventRow]], None],
        cancel_event: asyncio.Event,
    ):
        """Emit new event batches through ``on_batch`` until ``cancel_event`` is set.

        Returns normally on cancellation; poll failures are raised.
        """
        mailbox: asyncio.Queue = asyncio.Queue(maxsize=1)
        mailbox.put_nowait(FollowResult(data_set=data_set))

        cancelled = asyncio.ensure_future(cancel_event.wait())
        worker: Optional[asyncio.Task] = None
        received: Optional[asyncio.Future] = None
        logger.info("Following events", interval_seconds=self.interval)
        try:
            while True:
                received = asyncio.ensure_future(mailbox.get())
                done, _ = await asyncio.wait({received, cancelled}, return_when=asyncio.FIRST_COMPLETED)
                if cancelled in done:
                    logger.info("Stopped following events")
                    return

                result = received.result()
                if result.error is not None:
                    raise result.error
                if result.rows:
                    on_batch(result.rows)
                worker = asyncio.create_task(self._cycle(result, mailbox))
        finally:
            pending = [task for task in (cancelled, received, worker) if task is not None and not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
