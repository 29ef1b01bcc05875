from __future__ import annotations

import argparse
from pathlib import Path

from rich.markup import escape
from rich.panel import Panel

from webarchivum.application.services.codec_service import CodecService
from webarchivum.application.services.inspection_service import InspectionService
from webarchivum.cli.context import CLIContext


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("inspect", help="List the resources and subframe archives of a web archive")
    parser.add_argument("input", type=Path, help="Web archive file to inspect")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    archive = CodecService(ctx.settings).load(args.input)
    service = InspectionService()
    summary = service.inspect(archive)

    for line in service.render_listing(summary):
        ctx.console.print(line, markup=False, highlight=False)

    ctx.console.print(
        Panel.fit(
            "\n".join(
                [
                    f"File: {escape(str(args.input))}",
                    f"Main resource: {escape(summary.main_resource.url)}",
                    f"Resources: {summary.resource_count}",
                    f"Total size: {summary.total_size} bytes",
                ]
            ),
            title="Web Archive",
        )
    )
    return 0
