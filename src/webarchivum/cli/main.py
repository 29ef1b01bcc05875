from __future__ import annotations

import argparse
import logging

from rich.console import Console

from webarchivum import __version__
from webarchivum.cli.commands import convert_cmd, extract_cmd, inspect_cmd
from webarchivum.cli.context import CLIContext
from webarchivum.core.config import load_settings
from webarchivum.core.errors import WebArchiveError
from webarchivum.core.logging import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="webarchivum",
        description="Inspect, extract and convert Safari .webarchive files",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    parser.add_argument(
        "--allow-missing-mime-type",
        action="store_true",
        help="Accept resources without WebResourceMIMEType (default: reject them)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    inspect_cmd.register(subparsers)
    extract_cmd.register(subparsers)
    convert_cmd.register(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)
    console = Console()

    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 2

    try:
        settings = load_settings()
        if args.allow_missing_mime_type:
            settings = settings.with_overrides(require_mime_type=False)
        ctx = CLIContext(settings=settings, console=console)
        return handler(args, ctx)
    except WebArchiveError as exc:
        logger.error(str(exc))
        return 1
