"""CLI for profiling a single URL."""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from ..core.errors import InvalidUrl, UnsupportedScheme
from ..core.models import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_READ_TIMEOUT,
    DEFAULT_USER_AGENT,
    DEFAULT_WRITE_TIMEOUT,
    ProfileConfig,
    UrlTarget,
)
from ..core.profiler import Profiler
from ..results.aggregator import ReportPrinter
from ..results.charts import generate_latency_chart
from ..results.export import save_body


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="webprofiler",
        description="Profile website latency, response sizes and error rates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Single request
  python -m webprofiler https://example.com

  # 20 sequential requests, printing the longest body received
  python -m webprofiler https://example.com --profile 20 --show-body

  # 100 requests, 10 at a time, exporting per-request results
  python -m webprofiler https://example.com --profile 100 --concurrency 10 \\
      --output results.tsv --chart latency.png
        """,
    )

    parser.add_argument("url", help="URL to profile (http or https)")
    parser.add_argument(
        "--profile",
        metavar="N",
        default="1",
        help="Number of requests to make (default: 1; invalid or non-positive values mean 1)",
    )
    parser.add_argument(
        "--concurrency",
        metavar="K",
        default="1",
        help="Number of requests to run in parallel (default: 1 = sequential)",
    )

    # Timeout settings
    parser.add_argument(
        "--connect-timeout",
        type=float,
        default=DEFAULT_CONNECT_TIMEOUT,
        help=f"Connect and TLS handshake timeout per address in seconds (default: {DEFAULT_CONNECT_TIMEOUT})",
    )
    parser.add_argument(
        "--write-timeout",
        type=float,
        default=DEFAULT_WRITE_TIMEOUT,
        help=f"Request write timeout in seconds (default: {DEFAULT_WRITE_TIMEOUT})",
    )
    parser.add_argument(
        "--read-timeout",
        type=float,
        default=DEFAULT_READ_TIMEOUT,
        help=f"Timeout for each read in seconds (default: {DEFAULT_READ_TIMEOUT})",
    )

    parser.add_argument(
        "--user-agent",
        default=DEFAULT_USER_AGENT,
        help="User-Agent header to send (default: a desktop browser)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Disable TLS certificate verification (for self-signed certs)",
    )

    # Output options
    parser.add_argument(
        "--show-body",
        action="store_true",
        help="Print the longest response body received (runs of more than one request)",
    )
    parser.add_argument(
        "--save-body",
        metavar="PATH",
        help="Write the longest response body received to PATH",
    )
    parser.add_argument(
        "--output",
        metavar="PATH",
        help="Export per-request results (.csv for CSV, TSV otherwise)",
    )
    parser.add_argument("--chart", metavar="PATH", help="Output latency chart PNG path")

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "--quiet", action="store_true", help="Only log warnings and errors"
    )
    verbosity.add_argument(
        "--verbose",
        action="store_true",
        help="Log debug details and print per-request results as TSV",
    )
    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point for the profiling CLI."""
    args = build_parser().parse_args(argv)

    level = logging.INFO
    if args.quiet:
        level = logging.WARNING
    elif args.verbose:
        level = logging.DEBUG
    logging.basicConfig(
        level=level, format="%(asctime)s - %(levelname)s - %(message)s"
    )

    try:
        target = UrlTarget.parse(args.url)
    except (UnsupportedScheme, InvalidUrl) as e:
        print(f"Error: {e}")
        sys.exit(1)

    config = ProfileConfig(
        count=args.profile,
        concurrency=args.concurrency,
        connect_timeout=args.connect_timeout,
        write_timeout=args.write_timeout,
        read_timeout=args.read_timeout,
        user_agent=args.user_agent,
        insecure_ssl=args.insecure,
    )

    profiler = Profiler(target, config)
    printer = ReportPrinter()

    try:
        report = asyncio.run(profiler.run())
    except KeyboardInterrupt:
        print("\nProfiling interrupted by user")
        if len(profiler.aggregator):
            printer.outcomes = list(profiler.aggregator.outcomes)
            printer.print_report(profiler.aggregator.build_report())
        sys.exit(130)

    printer.outcomes = list(profiler.aggregator.outcomes)
    printer.print_report(report, show_body=args.show_body)
    if args.verbose:
        printer.print_tsv()

    if args.save_body:
        body = profiler.aggregator.longest.body
        if body is None:
            print("No response body to save (no successful responses)")
        else:
            path = asyncio.run(save_body(body, args.save_body))
            print(f"\nLongest response body saved to: {path}")

    if args.output:
        printer.export(args.output)
        print(f"\nResults saved to: {args.output}")

    if args.chart:
        generate_latency_chart(printer.outcomes, output_path=args.chart, show=False)


if __name__ == "__main__":
    main()
