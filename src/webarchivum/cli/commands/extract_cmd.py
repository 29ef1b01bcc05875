from __future__ import annotations

import argparse
from pathlib import Path

from rich.markup import escape
from rich.panel import Panel

from webarchivum.application.services.codec_service import CodecService
from webarchivum.application.services.extraction_service import (
    EVENT_ARCHIVE,
    EVENT_COLLISION,
    EVENT_FILE_WRITTEN,
    ExtractionEvent,
    ExtractionService,
)
from webarchivum.cli.context import CLIContext


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("extract", help="Write every resource of a web archive to individual files")
    parser.add_argument("input", type=Path, help="Web archive file to extract")
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Destination directory (default: the directory containing the input file)",
    )
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    archive = CodecService(ctx.settings).load(args.input)
    output = args.output if args.output is not None else args.input.expanduser().resolve().parent

    def render(event: ExtractionEvent) -> None:
        indent = "  " * event.depth
        if event.kind == EVENT_ARCHIVE:
            ctx.console.print(f"{indent}[bold]Archive[/bold] {escape(event.url)}", highlight=False)
        elif event.kind == EVENT_FILE_WRITTEN:
            ctx.console.print(
                f"{indent}  [green]Wrote[/green] {escape(str(event.path))} ({event.size} bytes)",
                highlight=False,
            )
        elif event.kind == EVENT_COLLISION:
            ctx.console.print(
                f"{indent}  [yellow]Overwrote[/yellow] {escape(str(event.path))} with {escape(event.url)}",
                highlight=False,
            )

    service = ExtractionService(settings=ctx.settings, on_event=render)
    report = service.extract_archive(archive, output)

    ctx.console.print(
        Panel.fit(
            "\n".join(
                [
                    f"Destination: {escape(str(report.base_dir))}",
                    f"Files written: {len(report.files_written)}",
                    f"Bytes written: {report.bytes_written}",
                    f"Overwritten: {len(report.collisions)}",
                ]
            ),
            title="Extraction Summary",
        )
    )
    return 0
