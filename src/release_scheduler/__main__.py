from __future__ import annotations

import argparse
import datetime as dt
import logging
import os
import sys

import yaml

from .parse_schedule import dump_document_yaml, load_document
from .render_gantt import render_gantt
from .render_mermaid import render_mermaid
from .render_rows import to_render_rows
from .render_text import render_text
from .schedule_models import Document, example_document
from .scheduling import (
    Pin,
    ScheduleConsistencyError,
    ScheduleValidationError,
    SchedulingError,
    replan,
)

LOG_LEVEL_ENV = "RELEASE_SCHEDULER_LOG_LEVEL"
OUTPUT_FORMATS = ("yaml", "human", "mermaid")

logger = logging.getLogger(__name__)


def _parse_pin(value: str) -> Pin:
    alias, sep, raw_date = value.partition(":")
    if not sep or not alias:
        raise argparse.ArgumentTypeError(f"invalid due date '{value}', expected <alias>:YYYY-MM-DD")
    try:
        return alias, dt.date.fromisoformat(raw_date)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{raw_date}', expected YYYY-MM-DD") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="release-scheduler",
        description="Derive release milestone dates from relative offsets",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("-o", "--output", choices=OUTPUT_FORMATS, default="yaml", help="Output format")
    parser.add_argument("--chart", help="Also write an SVG milestone timeline to this path")
    parser.add_argument(
        "--log-level",
        default=os.environ.get(LOG_LEVEL_ENV, "WARNING"),
        help=f"Logging level (default from ${LOG_LEVEL_ENV})",
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("example", help="Output an example schedule skeleton")

    new = commands.add_parser("new", help="Create a new schedule from a skeleton and one known date")
    new.add_argument("--name", required=True, help="Name of the project release")
    new.add_argument("--from-skeleton", required=True, help="Path to the schedule skeleton YAML")
    new.add_argument(
        "--with-due-date",
        required=True,
        type=_parse_pin,
        help="The known date, as <milestone alias>:YYYY-MM-DD",
    )

    replan_cmd = commands.add_parser("replan", help="Replan an existing schedule from its own dates")
    replan_cmd.add_argument("--schedule", required=True, help="Path to the schedule YAML")
    return parser


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _build_document(args: argparse.Namespace) -> Document:
    if args.command == "example":
        return example_document()

    if args.command == "new":
        document = load_document(args.from_skeleton)
        document.metadata["name"] = args.name
        return replan(document, args.with_due_date)

    document = load_document(args.schedule)
    return replan(document)


def _format(document: Document, output: str) -> str:
    if output == "human":
        return render_text(document)
    if output == "mermaid":
        return render_mermaid(document)
    return dump_document_yaml(document)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    try:
        document = _build_document(args)
    except FileNotFoundError as exc:
        print(f"Error: schedule file not found: {exc.filename}", file=sys.stderr)
        return 1
    except (yaml.YAMLError, ScheduleValidationError, SchedulingError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except ScheduleConsistencyError as exc:
        print(f"Fatal: {exc}", file=sys.stderr)
        return 3
    except Exception as exc:  # Unexpected
        print(f"Unexpected error while planning: {exc}", file=sys.stderr)
        return 1

    print(_format(document, args.output), end="")

    if args.chart:
        schedule = document.status if document.status is not None else document.spec
        try:
            render_gantt(
                rows=to_render_rows(schedule),
                out_path=args.chart,
                title=document.metadata.get("name", document.kind),
            )
        except ValueError as exc:
            print(f"Error: cannot render chart: {exc}", file=sys.stderr)
            return 2
        except Exception as exc:  # Unexpected
            print(f"Unexpected error while rendering: {exc}", file=sys.stderr)
            return 1
        logger.info("Wrote chart to %s", args.chart)

    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
