"""Command-line entry point for Feedback Lens.

Usage::

    python -m feedback_lens.main analyze feedback.csv --text-column Comment \
        --timestamp-column Date --save "Q3 survey"
    python -m feedback_lens.main list
    python -m feedback_lens.main show <report-id>
    python -m feedback_lens.main compare <current-id> <previous-id>

Logging and configuration are set up here so that the library modules can
be imported by unit tests and tooling without side-effects.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from slack_sdk import WebClient

from feedback_lens import config
from feedback_lens.analysis.units import ColumnMapping
from feedback_lens.csv_input import read_csv_file
from feedback_lens.exceptions import InputError, PersistenceError
from feedback_lens.identity import FileUserIdProvider
from feedback_lens.notices import ConsoleNoticeSink, NoticeSink, SlackNoticeSink
from feedback_lens.pipeline.run import AnalysisController, ProgressEvent
from feedback_lens.reporting.compare import compare_reports
from feedback_lens.reporting.render import post_report_to_slack, render_report
from feedback_lens.storage.service import ReportService
from feedback_lens.storage.sql_store import SqlReportStore

logger = logging.getLogger("feedback_lens")


def _configure_logging() -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=config.LOG_LEVEL,
    )


def _print_progress(event: ProgressEvent) -> None:
    print(
        f"\rAnalyzing… {event.percent():3d}% ({event.attempted}/{event.total} items)",
        end="" if event.percent() < 100 else "\n",
        file=sys.stderr,
        flush=True,
    )


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: '{value}'") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {number}")
    return number


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="feedback-lens",
        description="Classify customer feedback and build sentiment/topic reports.",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy URL of the report store (default: FEEDBACK_LENS_DATABASE_URL)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Analyze a CSV file of feedback")
    analyze.add_argument("csv_file", type=Path)
    analyze.add_argument("--text-column", help="Column holding the feedback text")
    analyze.add_argument("--timestamp-column", help="Optional column holding a date")
    analyze.add_argument("--batch-size", type=_positive_int, default=None)
    analyze.add_argument("--concurrency", type=_positive_int, default=None)
    analyze.add_argument("--save", metavar="NAME", help="Save the report under NAME")
    analyze.add_argument("--output", type=Path, help="Write the markdown report here")
    analyze.add_argument("--slack-channel", help="Post the report and notices to Slack")

    sub.add_parser("list", help="List your saved reports")

    show = sub.add_parser("show", help="Render a saved report")
    show.add_argument("report_id")

    compare = sub.add_parser("compare", help="Compare two saved reports")
    compare.add_argument("current_id")
    compare.add_argument("previous_id")
    return parser


def _slack_client() -> WebClient:
    token = os.getenv("SLACK_BOT_TOKEN")
    if not token:
        raise InputError("SLACK_BOT_TOKEN is required to post to Slack.")
    return WebClient(token=token)


def _cmd_analyze(args: argparse.Namespace, service: ReportService) -> int:
    headers, rows = read_csv_file(args.csv_file)
    if not args.text_column:
        print("Choose the feedback text column with --text-column. Columns found:")
        for name in headers:
            print(f"  - {name}")
        return 1

    sinks: List[NoticeSink] = [ConsoleNoticeSink()]
    slack = None
    if args.slack_channel:
        slack = _slack_client()
        sinks.append(SlackNoticeSink(slack, args.slack_channel))

    controller = AnalysisController(
        batch_size=args.batch_size,
        max_concurrency=args.concurrency,
        on_progress=_print_progress,
        notice_sinks=sinks,
    )
    mapping = ColumnMapping(args.text_column, args.timestamp_column or None)
    report = asyncio.run(controller.analyze(rows, mapping, headers=headers))
    if report is None:  # pragma: no cover – only when reset mid-run
        return 1

    title = args.save or f"{args.csv_file.stem} Analysis"
    text = render_report(report, title=title, source_file_name=args.csv_file.name)
    if args.output:
        args.output.write_text(text, encoding="utf-8")
        logger.info("Report written to %s", args.output)
    else:
        print(text)

    if slack is not None:
        post_report_to_slack(
            report=report,
            client=slack,
            channel=args.slack_channel,
            title=title,
            source_file_name=args.csv_file.name,
        )

    if args.save:
        user_id = FileUserIdProvider().get()
        storage_id = service.save(user_id, args.save, args.csv_file.name, report)
        print(f"Report saved! (ID: {storage_id})")
    return 0


def _cmd_list(service: ReportService) -> int:
    user_id = FileUserIdProvider().get()
    if not user_id:
        raise PersistenceError("User session ID is missing; cannot list reports.")
    summaries = service.list(user_id)
    if not summaries:
        print("No saved reports.")
    for summary in summaries:
        print(f"{summary.storage_id}  {summary.created_at:%Y-%m-%d %H:%M}  {summary.analysis_name}")
    return 0


def _cmd_show(args: argparse.Namespace, service: ReportService) -> int:
    loaded = service.get(args.report_id)
    if loaded is None:
        print(f"Report with ID {args.report_id} not found or has no data.", file=sys.stderr)
        return 1
    print(
        render_report(
            loaded.report,
            title=loaded.analysis_name,
            source_file_name=loaded.source_file_name,
        )
    )
    return 0


def _cmd_compare(args: argparse.Namespace, service: ReportService) -> int:
    current = service.get(args.current_id)
    previous = service.get(args.previous_id)
    for report_id, loaded in ((args.current_id, current), (args.previous_id, previous)):
        if loaded is None:
            print(f"Report with ID {report_id} not found or has no data.", file=sys.stderr)
            return 1
    print(f"Comparing '{current.analysis_name}' vs '{previous.analysis_name}'")
    for delta in compare_reports(current.report, previous.report):
        print(
            f"  {delta.metric:<16} {delta.current:>8g}{delta.unit} "
            f"(was {delta.previous:g}{delta.unit}, {delta.direction} {delta.formatted_percentage})"
        )
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse *argv* and run the requested command; return the exit code."""

    _configure_logging()
    args = _build_parser().parse_args(argv)
    store = SqlReportStore(args.database_url)
    service = ReportService(store)
    try:
        if args.command == "analyze":
            return _cmd_analyze(args, service)
        if args.command == "list":
            return _cmd_list(service)
        if args.command == "show":
            return _cmd_show(args, service)
        return _cmd_compare(args, service)
    except (InputError, PersistenceError) as exc:
        logger.error("%s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        store.dispose()


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
