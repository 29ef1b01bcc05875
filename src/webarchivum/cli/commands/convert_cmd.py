from __future__ import annotations

import argparse
from pathlib import Path

from rich.markup import escape

from webarchivum.application.services.codec_service import ArchiveFormat, CodecService
from webarchivum.cli.context import CLIContext
from webarchivum.core.errors import ArchiveIOError
from webarchivum.infrastructure.plist.document_codec import detect_format


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("convert", help="Rewrite a web archive as XML or binary property list")
    parser.add_argument("input", type=Path, help="Web archive file to read")
    parser.add_argument("-o", "--output", type=Path, required=True, help="Web archive file to write")
    parser.add_argument(
        "--format",
        choices=[fmt.value for fmt in ArchiveFormat],
        default=None,
        help="Output encoding (default: WEBARCHIVUM_DEFAULT_FORMAT, else binary)",
    )
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    if args.output.expanduser().resolve() == args.input.expanduser().resolve():
        raise ArchiveIOError("Refusing to overwrite the input file", path=args.output)

    codec = CodecService(ctx.settings)
    raw = codec.read_file(args.input)
    archive = codec.loads(raw, source=args.input)
    written = codec.dump(archive, args.output, args.format)

    source_format = detect_format(raw)
    target_format = args.format or ctx.settings.default_format
    ctx.console.print(
        f"[green]Converted[/green] {escape(str(args.input))} ({source_format or 'unknown'}) -> "
        f"{escape(str(args.output))} ({target_format}, {written} bytes)",
        highlight=False,
    )
    return 0
