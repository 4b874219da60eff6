"""Command-line entry point for running and managing page digest workflows."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from .config import load_config
from .errors import StoreError, ValidationError
from .models import FREQUENCIES, NOTIFY_TYPES
from .runner import build_runner
from .state import WorkflowStore

LOGGER = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fetch, summarize and deliver web pages on a schedule")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    run_parser = sub.add_parser("run", help="Process due workflows")
    run_parser.add_argument("--once", action="store_true", help="Run a single pass and exit")
    run_parser.add_argument("--interval", type=float, help="Seconds to sleep between passes")

    add_parser = sub.add_parser("add", help="Create a workflow")
    add_parser.add_argument("--user-id", required=True)
    add_parser.add_argument("--url", required=True)
    add_parser.add_argument("--prompt", required=True)
    add_parser.add_argument("--frequency", required=True, choices=FREQUENCIES)
    add_parser.add_argument("--notify-type", required=True, choices=NOTIFY_TYPES)
    add_parser.add_argument("--email")

    list_parser = sub.add_parser("list", help="List a user's workflows")
    list_parser.add_argument("--user-id", required=True)

    results_parser = sub.add_parser("results", help="Show results for a workflow")
    results_parser.add_argument("workflow_id")

    seen_parser = sub.add_parser("seen", help="Mark a result as seen")
    seen_parser.add_argument("result_id")

    delete_parser = sub.add_parser("delete", help="Delete a workflow and its results")
    delete_parser.add_argument("workflow_id")

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "run"
        args.once = False
        args.interval = None
    return args


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(verbose=args.verbose)

    config = load_config()
    store = WorkflowStore(config.store_file)

    try:
        if args.command == "run":
            runner = build_runner(config)
            if args.once:
                report = runner.run_pass()
                return 1 if report.failed else 0
            runner.run_forever(args.interval if args.interval is not None else config.poll_interval)
        elif args.command == "add":
            workflow = store.create_workflow(
                {
                    "user_id": args.user_id,
                    "url": args.url,
                    "prompt": args.prompt,
                    "frequency": args.frequency,
                    "notify_type": args.notify_type,
                    "email": args.email,
                }
            )
            print(workflow.id)
        elif args.command == "list":
            for workflow in store.list_by_user(args.user_id):
                last_run = workflow.last_run.strftime("%Y-%m-%d %H:%M") if workflow.last_run else "never"
                print(f"{workflow.id}  {workflow.status:<6}  {workflow.frequency:<6}  {last_run}  {workflow.url}")
        elif args.command == "results":
            for result in store.list_results(args.workflow_id):
                marker = " " if result.seen else "*"
                print(f"{marker} {result.id}  {result.timestamp.strftime('%Y-%m-%d %H:%M')}")
                print(f"  {result.summary.strip()}")
        elif args.command == "seen":
            if store.mark_result_seen(args.result_id) is None:
                LOGGER.error("Result %s not found", args.result_id)
                return 1
        elif args.command == "delete":
            if not store.delete_workflow(args.workflow_id):
                LOGGER.error("Workflow %s not found", args.workflow_id)
                return 1
    except (StoreError, ValidationError) as exc:
        LOGGER.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        LOGGER.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
