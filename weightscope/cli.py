# weightscope/cli.py
"""
cli.py

Rich console CLI:
- scan:    compute parameter and size statistics for a Hub model from its
           safetensors headers, print tables, optionally export JSON.
- version: show the package version.
"""
from __future__ import annotations

import argparse
from typing import Optional

import httpx
from rich.console import Console
from rich.panel import Panel

from weightscope import __version__
from weightscope.analysis.analyzer import analyze
from weightscope.config import DEFAULT_REVISION, Settings
from weightscope.errors import WeightScopeError
from weightscope.logging import configure_logging
from weightscope.reporting import console as console_reporter
from weightscope.reporting.json_reporter import write_json

console = Console(stderr=True)


def _positive_float(value: str) -> float:
    try:
        f = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from None
    if f <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value!r}")
    return f


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="wscope",
        description="weightscope: parameter & memory statistics for Hugging Face safetensors models.",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    sub = p.add_subparsers(dest="cmd", title="Available Commands", metavar="<command>")

    sp_scan = sub.add_parser("scan", help="Compute statistics for a model on the Hub")
    sp_scan.add_argument("model_id", help="Model repository id, e.g. org/model")
    sp_scan.add_argument(
        "--revision", default=DEFAULT_REVISION, help=f"Branch, tag or commit (default: {DEFAULT_REVISION})"
    )
    sp_scan.add_argument("--token", default=None, help="Hub access token (default: $HF_TOKEN)")
    sp_scan.add_argument(
        "--timeout",
        type=_positive_float,
        default=None,
        help="Per-request timeout in seconds (default: $WEIGHTSCOPE_TIMEOUT or 60)",
    )
    sp_scan.add_argument(
        "--endpoint", default=None, help="Hub endpoint (default: $HF_ENDPOINT or https://huggingface.co)"
    )
    sp_scan.add_argument(
        "--json-out", type=str, default=None, help="Write JSON report to this path ('-' for stdout)"
    )
    sp_scan.add_argument("--no-table", action="store_true", help="Skip the console tables")
    sp_scan.add_argument("--debug", action="store_true", help="Enable debug logging")
    sp_scan.add_argument("--quiet", action="store_true", help="Only log warnings and errors")

    sub.add_parser("version", help="Show the version of weightscope")

    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return 0

    if args.cmd == "version":
        console_reporter.console.print(f"weightscope {__version__}")
        return 0

    if args.cmd == "scan":
        configure_logging(debug=args.debug, quiet=args.quiet)
        try:
            settings = Settings.from_env(
                endpoint=args.endpoint, token=args.token, timeout=args.timeout
            )
        except ValueError as e:
            console.print(f"[red]Invalid configuration:[/red] {e}")
            return 2

        try:
            rep = analyze(args.model_id, args.revision, settings)
        except (WeightScopeError, httpx.HTTPError) as e:
            console.print(Panel(f"[bold red]{type(e).__name__}:[/bold red] {e}", style="red"))
            return 1

        if not args.no_table:
            # stdout is reserved for the JSON document
            console_reporter.render_report(rep, console if args.json_out == "-" else None)

        if args.json_out:
            write_json(rep, args.json_out)
            if args.json_out != "-":
                console.print(f"[dim]Wrote JSON report → {args.json_out}[/dim]")

        return 0

    parser.print_help()
    return 1
