from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from attabench.chart import BandIndex, ChartOptions, build_chart
from attabench.duration import Time
from attabench.errors import ResultFormatError
from attabench.io import read_result
from attabench.log import get_logger, setup_logging
from attabench.ranges import ClosedRange
from attabench.sample import AVERAGE, MINIMUM, Band

log = get_logger("cli")


def _band_arg(text: str) -> Band | None:
    if text == "none":
        return None
    try:
        return Band.parse(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _time_arg(text: str) -> Time:
    try:
        return Time.parse(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="attabench", description="Attabench result tools")
    p.add_argument("-v", "--verbose", action="store_true")
    p.add_argument("--log-file", type=Path, help="Also write a debug log here")
    sub = p.add_subparsers(dest="cmd", required=True)

    lt = sub.add_parser("list-tasks", help="List task names in a result file")
    lt.add_argument("result", type=Path)

    ch = sub.add_parser("chart", help="Print chart data for a result file as JSON")
    ch.add_argument("result", type=Path)
    ch.add_argument("-o", "--output", type=Path, help="Write JSON here instead of stdout")
    ch.add_argument("-t", "--tasks", nargs="+", default=[], help="Tasks to chart (default: all)")
    ch.add_argument("--min-size", type=int)
    ch.add_argument("--max-size", type=int)
    ch.add_argument("--min-time", type=_time_arg)
    ch.add_argument("--max-time", type=_time_arg)
    ch.add_argument("--no-amortized", dest="amortized", action="store_false")
    ch.add_argument("--linear-size", action="store_true")
    ch.add_argument("--linear-time", action="store_true")
    ch.add_argument("--top-band", type=_band_arg, default=Band.sigma(2))
    ch.add_argument("--center-band", type=_band_arg, default=AVERAGE)
    ch.add_argument("--bottom-band", type=_band_arg, default=MINIMUM)
    ch.add_argument("--title", default="")
    ch.add_argument("--filename-as-title", action="store_true")
    return p


def _validate_chart_args(p: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    if (args.min_size is None) != (args.max_size is None):
        p.error("Both --min-size and --max-size must be specified.")
    if args.min_size is not None and args.max_size < args.min_size:
        p.error("--min-size must be lower than --max-size.")
    if (args.min_time is None) != (args.max_time is None):
        p.error("Both --min-time and --max-time must be specified.")
    if args.min_time is not None and args.max_time < args.min_time:
        p.error("--min-time must be lower than --max-time.")


def main(argv: list[str] | None = None) -> int:
    p = _build_parser()
    args = p.parse_args(argv)
    setup_logging(verbose=args.verbose, log_file=getattr(args, "log_file", None))

    if args.cmd == "chart":
        _validate_chart_args(p, args)

    try:
        store = read_result(args.result)
    except (OSError, ResultFormatError) as e:
        log.error("Can't read %s: %s", args.result, e)
        return 1

    if args.cmd == "list-tasks":
        for task in store.tasks:
            print(task.name)
        return 0

    if args.cmd == "chart":
        tasks = list(store.tasks)
        if args.tasks:
            wanted = set(args.tasks)
            unknown = wanted - {t.name for t in tasks}
            for name in sorted(unknown):
                log.warning("No such task: %s", name)
            # Explicitly named tasks are charted even if unchecked in the file.
            tasks = [t for t in tasks if t.name in wanted]
            for t in tasks:
                t.checked = True

        options = ChartOptions(
            amortized_time=args.amortized,
            logarithmic_size=not args.linear_size,
            logarithmic_time=not args.linear_time,
            bands={
                BandIndex.TOP: args.top_band,
                BandIndex.CENTER: args.center_band,
                BandIndex.BOTTOM: args.bottom_band,
            },
        )
        if args.min_size is not None:
            options.display_size_range = ClosedRange(args.min_size, args.max_size)
            options.display_all_measured_sizes = False
        if args.min_time is not None:
            options.display_time_range = ClosedRange(args.min_time, args.max_time)
            options.display_all_measured_times = False

        title = args.result.name if args.filename_as_title else args.title
        chart = build_chart(tasks, options, title=title)
        text = json.dumps(chart.to_json(), indent=2)
        if args.output is not None:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_text(text + "\n", encoding="utf-8")
        else:
            sys.stdout.write(text + "\n")
        return 0

    raise AssertionError(f"Unhandled command: {args.cmd}")
