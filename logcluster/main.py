"""logcluster: split interleaved process logs into per-thread logs and query thread lifetimes."""

import argparse
import logging
import sys
from datetime import datetime

from logcluster.config import Config, load_config, load_yaml_config
from logcluster.errors import LogClusterError
from logcluster.ingest import ingest_directory
from logcluster.parser import parse_timestamp
from logcluster.report import build_report, format_report_json, format_report_text
from logcluster.tracker import SegmentTracker

logger = logging.getLogger(__name__)

DEFAULT_T1 = "2020-08-09 18:59:25,200"
DEFAULT_T2 = "2020-08-09 18:59:25,300"


def _timestamp_arg(name: str):
    def convert(value: str) -> datetime:
        try:
            return parse_timestamp(value)
        except ValueError as exc:
            raise argparse.ArgumentTypeError(f"invalid format of {name} input: {exc}") from exc
    return convert


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="logcluster",
        description="Cluster interleaved process logs into per-thread logs and "
                    "report thread activity, peak concurrency and runtimes.",
    )
    parser.add_argument(
        "--config", default=None,
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--input-dir", default=None,
        help=f"Directory of raw process log files (default: {Config.input_dir})",
    )
    parser.add_argument(
        "--output-dir", default=None,
        help=f"Directory for per-thread log files (default: {Config.output_dir})",
    )
    parser.add_argument(
        "--workers", type=int, default=None,
        help="Number of input files ingested in parallel (default: 1)",
    )
    parser.add_argument(
        "--t1", type=_timestamp_arg("t1"), default=parse_timestamp(DEFAULT_T1),
        help=f"Start of the active-threads time range (default: {DEFAULT_T1})",
    )
    parser.add_argument(
        "--t2", type=_timestamp_arg("t2"), default=parse_timestamp(DEFAULT_T2),
        help=f"End of the active-threads time range (default: {DEFAULT_T2})",
    )
    parser.add_argument(
        "--output",
        choices=["text", "json"],
        default="text",
        help="Report format (default: text)",
    )
    parser.add_argument(
        "--log-level", default=None,
        help="Diagnostic log level on stderr (default: INFO)",
    )
    return parser


def run(config: Config, t1: datetime, t2: datetime, output: str = "text") -> int:
    """Ingest, query and print. Returns the process exit status."""
    try:
        with SegmentTracker(config.output_dir) as tracker:
            ingest = ingest_directory(config.input_dir, tracker, workers=config.workers)
    except (FileNotFoundError, LogClusterError) as exc:
        logger.error("%s", exc)
        return 1

    logger.info(
        "Ingested %d line(s) from %d file(s) into %d thread segment(s)",
        ingest.lines, ingest.files, len(tracker),
    )

    report = build_report(tracker.segments, t1, t2)
    if output == "json":
        print(format_report_json(report))
    else:
        print(format_report_text(report))

    if not ingest.ok:
        logger.error("%d input file(s) failed to ingest", len(ingest.failures))
        return 1
    return 0


def _main(argv: list[str] | None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [logcluster] %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    parser = build_parser()
    args = parser.parse_args(argv)
    if args.t1 > args.t2:
        parser.error("t1 must not be later than t2")

    try:
        config = load_config(args, load_yaml_config(args.config))
    except ValueError as exc:
        parser.error(str(exc))
    logging.getLogger().setLevel(config.log_level)
    logger.info(
        "Config: input_dir=%s, output_dir=%s, workers=%d",
        config.input_dir, config.output_dir, config.workers,
    )

    return run(config, args.t1, args.t2, output=args.output)


def main(argv: list[str] | None = None) -> int:
    try:
        return _main(argv)
    except KeyboardInterrupt:
        sys.exit(130)
    except BrokenPipeError:
        sys.exit(0)


if __name__ == "__main__":
    sys.exit(main())
