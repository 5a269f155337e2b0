"""
Command line for optimize events and recommendations.

Usage:
  python -m optimize_events events --since -7d --until 2023-07-31
  python -m optimize_events events --events experiment_deployment_started,experiment_deployment_completed
  python -m optimize_events events --optimizer-id namespace-name-00000000-0000-0000-0000-000000000000 --count 5
  python -m optimize_events events --namespace some-namespace --cluster-id 00000000-0000-0000-0000-000000000000
  python -m optimize_events events --workload-name some-workload --follow --follow-interval 30s
  python -m optimize_events recommendations --optimizer-id namespace-name-00000000-0000-0000-0000-000000000000 --include-invalidated --count 5

Connection settings come from the environment (or .env):
  UQL_URL, UQL_TOKEN, UQL_TENANT_ID, UQL_VERIFY, UQL_TIMEOUT
"""
from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

import structlog

from optimize_events.config import OptimizeEventsConfig
from optimize_events.models import FilterCriteria
from optimize_events.output import (
    EVENT_DETAIL_FIELDS,
    EVENT_FIELDS,
    OUTPUT_FORMATS,
    RECOMMENDATION_DETAIL_FIELDS,
    RECOMMENDATION_FIELDS,
    OutputRenderer,
)
from optimize_events.service import OptimizeEventsService
from shared.exceptions import OptimizeEventsException
from shared.logger import setup_logging
from shared.utils import parse_interval
from uql_integration.client import UqlClient

logger = structlog.get_logger()

SCOPE_FLAGS = ("cluster_id", "namespace", "workload_name")


def _event_list(value: str) -> List[str]:
    return [name.strip() for name in value.split(",") if name.strip()]


def _interval_seconds(value: str) -> float:
    try:
        return parse_interval(value).total_seconds()
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _add_common_arguments(parser: argparse.ArgumentParser, noun: str, since_default: Optional[str]):
    parser.add_argument("-c", "--cluster-id", help=f"Retrieve {noun} constrained to a specific cluster by its ID")
    parser.add_argument("-n", "--namespace", help=f"Retrieve {noun} constrained to a specific namespace by its name")
    parser.add_argument("-w", "--workload-name", help=f"Retrieve {noun} constrained to a specific workload by its name")
    parser.add_argument("-i", "--optimizer-id", help=f"Retrieve {noun} for a specific optimizer by its ID")
    parser.add_argument(
        "-s",
        "--since",
        default=since_default,
        help=f"Retrieve {noun} contained in the time interval starting at a relative or exact time. (default: {since_default or '-1h'})",
    )
    parser.add_argument(
        "-u",
        "--until",
        help=f"Retrieve {noun} contained in the time interval ending at a relative or exact time. (default: now)",
    )
    parser.add_argument(
        "-o",
        "--output",
        choices=OUTPUT_FORMATS,
        default=None,
        help="Output format (default: OPTIMIZE_EVENTS_OUTPUT or table)",
    )
    # developer override of the solution defining the event types
    parser.add_argument("--solution-name", default=None, help=argparse.SUPPRESS)
    return parser


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="optimize-events",
        description="Retrieve optimization events and recommendations. Useful for monitoring and debug.",
    )
    parser.add_argument("--log-level", default=None, help="Log level (default: OPTIMIZE_EVENTS_LOG_LEVEL or WARNING)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    events = subparsers.add_parser(
        "events",
        help="Retrieve event logs for a given optimization/workload",
        description="Retrieve event logs for a given optimization/workload. Useful for monitoring and debug.",
    )
    _add_common_arguments(events, "events", since_default=None)

    event_types = events.add_mutually_exclusive_group()
    event_types.add_argument(
        "-p", "--include-progress", action="store_true", help="Include progress events in query and output"
    )
    event_types.add_argument(
        "-e",
        "--events",
        type=_event_list,
        action="extend",
        default=None,
        help="Customize the types of events to be retrieved (comma separated, repeatable)",
    )

    limits = events.add_mutually_exclusive_group()
    limits.add_argument("--count", type=int, default=None, help="Limit the number of events retrieved to the specified count")
    limits.add_argument("-f", "--follow", action="store_true", help="Follow the events as they are produced")
    events.add_argument(
        "-t",
        "--follow-interval",
        type=_interval_seconds,
        default=None,
        help="Duration between requests to UQL when following events, e.g. 30s or 5m (default: 60s)",
    )

    recommendations = subparsers.add_parser(
        "recommendations",
        help="Retrieve resulting recommendations for a given optimization/workload",
        description="Retrieve resulting recommendations for a given optimization/workload.",
    )
    _add_common_arguments(recommendations, "recommendations", since_default="-52w")
    recommendations.add_argument(
        "--include-invalidated", action="store_true", help="Include recommendations that have not been verified"
    )
    recommendations.add_argument(
        "--count",
        type=int,
        default=1,
        help="Limit the number of recommendations retrieved to the specified count, -1 for all (default: 1)",
    )
    return parser


def validate_args(parser: argparse.ArgumentParser, args: argparse.Namespace):
    """Reject flag combinations argparse groups cannot express."""
    if args.optimizer_id:
        for flag in SCOPE_FLAGS:
            if getattr(args, flag):
                parser.error(f"argument --optimizer-id: not allowed with argument --{flag.replace('_', '-')}")
    if args.command == "events" and args.follow_interval is not None and not args.follow:
        logger.warning("--follow-interval has no effect without --follow")


def criteria_from_args(args: argparse.Namespace, config: OptimizeEventsConfig) -> FilterCriteria:
    count = args.count
    if count == -1:
        count = None
    return FilterCriteria(
        cluster_id=args.cluster_id,
        namespace=args.namespace,
        workload_name=args.workload_name,
        optimizer_id=args.optimizer_id,
        since=args.since,
        until=args.until,
        count=count,
        events=getattr(args, "events", None),
        include_progress=getattr(args, "include_progress", False),
        include_invalidated=getattr(args, "include_invalidated", False),
        solution_name=args.solution_name or config.solution_name,
    )


def install_signal_handlers(cancel_event: asyncio.Event) -> List[signal.Signals]:
    """Set ``cancel_event`` on SIGINT/SIGTERM. Returns the signals registered on the loop."""
    loop = asyncio.get_running_loop()

    def handle_interrupt(sig: signal.Signals):
        logger.info("Received signal, stopping", signal=sig.name)
        cancel_event.set()

    if sys.platform != "win32":
        registered = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, handle_interrupt, sig)
            registered.append(sig)
        return registered

    # asyncio signal handlers are not supported on Windows
    def windows_handler(signum: int, frame: object):
        loop.call_soon_threadsafe(handle_interrupt, signal.Signals(signum))

    signal.signal(signal.SIGINT, windows_handler)
    return []


async def run(args: argparse.Namespace, config: OptimizeEventsConfig, client) -> None:
    """Run the parsed command against ``client``."""
    criteria = criteria_from_args(args, config)
    output_format = args.output or config.output
    service = OptimizeEventsService(client, config)

    if args.command == "recommendations":
        renderer = OutputRenderer(output_format, RECOMMENDATION_FIELDS, RECOMMENDATION_DETAIL_FIELDS)
        renderer.render(await service.list_recommendations(criteria))
        return

    renderer = OutputRenderer(output_format, EVENT_FIELDS, EVENT_DETAIL_FIELDS)
    result = await service.list_events(criteria, follow=args.follow)
    renderer.render(result)
    if not args.follow or result.cursor is None:
        return

    cancel_event = asyncio.Event()
    registered = install_signal_handlers(cancel_event)
    try:
        await service.follow_events(result, renderer.render_increment, cancel_event, interval=args.follow_interval)
    finally:
        loop = asyncio.get_running_loop()
        for sig in registered:
            loop.remove_signal_handler(sig)


async def _run_with_client(args: argparse.Namespace, config: OptimizeEventsConfig):
    async with UqlClient() as client:
        await run(args, config, client)


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = OptimizeEventsConfig()
    setup_logging(args.log_level or config.log_level, json_logs=config.json_logs)
    validate_args(parser, args)

    try:
        asyncio.run(_run_with_client(args, config))
    except OptimizeEventsException as e:
        logger.debug("Command failed", error=str(e), error_type=type(e).__name__)
        raise SystemExit(f"Error: {e}")
    except KeyboardInterrupt:
        raise SystemExit(130)


if __name__ == "__main__":
    main()
